"""
Voice-call bridge.

Drives one real-time voice session per instance through
``idle -> starting -> active -> finished``, with an SDK error returning it to
``idle`` from anywhere. The voice SDK runs in the browser. Its callback
events (``call-start``, ``message``, ``call-end``, ``error``) arrive over the
``/ws/voice`` socket, and the outbound ``start``/``stop``/``setMuted`` calls
travel back over the same socket as commands.
"""
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
import json
import logging

from fastapi import WebSocket

from config import Settings
from errors import InvalidTransitionError
from prompts import VOICE_INTERVIEWER_PROMPT

logger = logging.getLogger(__name__)


class CallStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    FINISHED = "finished"


# event -> (allowed source states, target state)
TRANSITIONS = {
    "start": ({CallStatus.IDLE, CallStatus.FINISHED}, CallStatus.STARTING),
    "call-start": ({CallStatus.STARTING}, CallStatus.ACTIVE),
    # Stopping while connecting ends the call before call-start arrives.
    "call-end": ({CallStatus.STARTING, CallStatus.ACTIVE}, CallStatus.FINISHED),
}


def build_call_config(settings: Settings, assessment_id: int, questions: list[dict]) -> dict:
    """SDK ``start`` payload, either a pre-registered assistant or an inline model."""
    variables = {
        "assessmentId": assessment_id,
        "questions": json.dumps(questions),
    }
    if settings.vapi_assistant_id:
        return {
            "assistantId": settings.vapi_assistant_id,
            "assistantOverrides": {"variableValues": variables},
        }
    return {
        "model": {
            "provider": settings.vapi_model_provider,
            "model": settings.vapi_model,
            "systemPrompt": VOICE_INTERVIEWER_PROMPT,
        },
        "voice": settings.vapi_voice,
        "variables": variables,
    }


class WebSocketVoiceRemote:
    """Outbound SDK calls, sent to the browser as commands."""

    def __init__(self, ws: WebSocket):
        self.ws = ws

    async def start(self, config: dict) -> None:
        await self.ws.send_json({"type": "command", "command": "start", "config": config})

    async def stop(self) -> None:
        await self.ws.send_json({"type": "command", "command": "stop"})

    async def set_muted(self, muted: bool) -> None:
        await self.ws.send_json({"type": "command", "command": "setMuted", "muted": muted})


class VoiceCallBridge:
    def __init__(
        self,
        sdk: Any,
        start_interview: Callable[[Optional[str]], Awaitable[dict]],
        save_feedback: Callable[[int, list[dict]], Awaitable[dict]],
        call_config: Callable[[int, list[dict]], dict],
    ):
        self.sdk = sdk
        self._start_interview = start_interview
        self._save_feedback = save_feedback
        self._call_config = call_config

        self.status = CallStatus.IDLE
        self.assessment_id: Optional[int] = None
        self.questions: list[dict] = []
        self.transcript: list[dict] = []
        self.current_message: Optional[dict] = None
        self.is_muted = False

    def _transition(self, event: str) -> None:
        allowed, target = TRANSITIONS[event]
        if self.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot handle '{event}' while call is {self.status.value}",
                {"event": event, "status": self.status.value},
            )
        logger.info(f"Voice call {self.status.value} -> {target.value} on {event}")
        self.status = target

    async def start(self, topic: Optional[str] = None) -> dict:
        self._transition("start")
        try:
            result = await self._start_interview(topic)
        except Exception:
            self.status = CallStatus.IDLE
            raise
        if result.get("error"):
            logger.warning(f"Failed to start interview: {result['error']}")
            self.status = CallStatus.IDLE
            return result

        self.assessment_id = result["assessment_id"]
        self.questions = result["questions"]
        self.transcript = []
        self.current_message = None
        self.is_muted = False
        await self.sdk.start(self._call_config(self.assessment_id, self.questions))
        return result

    def on_call_start(self) -> None:
        self._transition("call-start")
        self.transcript = []
        self.current_message = None

    def on_message(self, message: dict) -> Optional[dict]:
        # Late messages after the call ended are dropped.
        if self.status != CallStatus.ACTIVE:
            return None
        if message.get("type") != "transcript":
            return None
        if message.get("transcriptType", "final") != "final":
            return None
        entry = {"role": message.get("role", ""), "message": message.get("transcript", "")}
        self.transcript.append(entry)
        self.current_message = entry
        return entry

    async def on_call_end(self) -> dict:
        self._transition("call-end")
        return await self._save_feedback(self.assessment_id, list(self.transcript))

    def on_error(self, error: Any) -> str:
        if isinstance(error, dict):
            message = str(error.get("message") or error.get("error") or "Unknown error")
        else:
            message = str(error) if error else "Unknown error"
        logger.error(f"Voice call error while {self.status.value}: {message}")
        self.status = CallStatus.IDLE
        return message

    async def stop(self) -> None:
        # The SDK answers with a call-end event, which finishes the session.
        if self.status in (CallStatus.STARTING, CallStatus.ACTIVE):
            await self.sdk.stop()

    async def set_muted(self, muted: bool) -> bool:
        if self.status not in (CallStatus.STARTING, CallStatus.ACTIVE):
            return False
        await self.sdk.set_muted(muted)
        self.is_muted = muted
        return True


async def handle_voice_event(bridge: VoiceCallBridge, data: dict) -> Optional[dict]:
    """Apply one socket event to the bridge and return the reply, if any."""
    event = data.get("event")

    if event == "start":
        result = await bridge.start(data.get("topic"))
        return {"type": "result", "action": "start", **result}
    if event == "call-start":
        bridge.on_call_start()
        return None
    if event == "message":
        message = data.get("message")
        if not isinstance(message, dict):
            return {"type": "error", "error": "Message payload must be an object"}
        entry = bridge.on_message(message)
        return {"type": "transcript", **entry} if entry else None
    if event == "call-end":
        result = await bridge.on_call_end()
        return {"type": "result", "action": "feedback", **result}
    if event == "error":
        return {"type": "error", "error": bridge.on_error(data.get("error"))}
    if event == "stop":
        await bridge.stop()
        return None
    if event == "mute":
        applied = await bridge.set_muted(bool(data.get("muted")))
        return {"type": "muted", "muted": bridge.is_muted, "applied": applied}

    return {"type": "error", "error": f"Unknown event: {event}"}
