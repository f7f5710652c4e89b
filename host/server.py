from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import websockets
from websockets.server import WebSocketServerProtocol

from holdem.game import GameEngine
from holdem.models import ActionResult, ActionType, InvalidSeatState, TableConfig

LOGGER = logging.getLogger("holdem_host")

# TableHost glues the engine to browser clients over WebSocket.
# Every network and timing concern lives here; the GameEngine stays pure.


@dataclass
class ClientSession:
    seat: int
    name: str
    websocket: WebSocketServerProtocol


@dataclass
class PendingAction:
    seat: int
    deadline: float
    timer_task: Optional[asyncio.Task] = None


class TableHost:
    def __init__(self, config: TableConfig) -> None:
        self.engine = GameEngine(config)
        self.table_id = "T-1"
        self.sessions: Dict[int, ClientSession] = {}
        self.pending_action: Optional[PendingAction] = None
        self.bot_task: Optional[asyncio.Task] = None
        self.lock = asyncio.Lock()

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with websockets.serve(self._handle_connection, host, port):
            LOGGER.info("Table host listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: WebSocketServerProtocol) -> None:
        # First message must be "hello" so we know who is sitting down.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        name_raw = hello.get("name")
        if not isinstance(name_raw, str) or not name_raw.strip():
            await self._send_error(websocket, code="BAD_SCHEMA", msg="name required")
            await websocket.close()
            return

        try:
            async with self.lock:
                seat = self.engine.assign_seat(name_raw)
                self.engine.set_connected(seat.seat, True)
        except ValueError as exc:
            await self._send_error(websocket, code=str(exc), msg="Seat claim rejected")
            await websocket.close()
            return
        except RuntimeError:
            await self._send_error(websocket, code="TABLE_FULL", msg="No seats available")
            await websocket.close()
            return

        # Register before closing the old socket so its handler sees it was replaced.
        previous = self.sessions.get(seat.seat)
        session = ClientSession(seat=seat.seat, name=seat.name, websocket=websocket)
        self.sessions[seat.seat] = session
        if previous:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")
        LOGGER.info("Seat %s claimed by %s (stack=%s)", seat.seat, seat.name, seat.stack)

        await self._send_json(websocket, "welcome", {"table_id": self.table_id, "seat": seat.seat, "config": self._config_payload()})
        await self._publish_lobby()
        await self._publish_snapshots()

        try:
            async for raw in websocket:
                await self._dispatch(session, self._decode(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            if self.sessions.get(session.seat) is session:
                self.sessions.pop(session.seat, None)
                await self._handle_leave(session)
            LOGGER.info("Seat %s (%s) disconnected", session.seat, session.name)

    async def _dispatch(self, session: ClientSession, message: Dict[str, object]) -> None:
        msg_type = message.get("type")
        if msg_type == "action":
            await self._handle_action(session, message)
        elif msg_type == "start":
            await self._handle_start(session)
        elif msg_type == "add_bot":
            await self._handle_add_bot(session)
        elif msg_type == "leave":
            self.sessions.pop(session.seat, None)
            await self._handle_leave(session)
            await session.websocket.close()
        else:
            await self._send_error(session.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")

    # Message handlers ------------------------------------------------

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        action_name = message.get("action")
        amount = message.get("amount")

        async with self.lock:
            if not self.pending_action or self.pending_action.seat != session.seat:
                await self._send_error(session.websocket, code="OUT_OF_TURN", msg="Not your turn")
                return
            if action_name == ActionType.RAISE_TO.value and not isinstance(amount, int):
                await self._send_error(session.websocket, code="BAD_SCHEMA", msg="amount required for raise")
                return

            result = self.engine.submit_action(session.seat, action_name, amount)  # type: ignore[arg-type]
            if not result.ok:
                LOGGER.warning(
                    "Rejected action seat=%s action=%s amount=%s reason=%s",
                    session.seat,
                    action_name,
                    amount,
                    result.reason,
                )
                await self._send_error(session.websocket, code=result.reason or "INVALID_ACTION", msg=result.msg or "")
                return
            self._clear_pending()

        await self._after_change(list(result.events))

    async def _handle_start(self, session: ClientSession) -> None:
        async with self.lock:
            if not self.engine.can_start_hand():
                await self._send_error(session.websocket, code="CANNOT_START", msg="Need two seated players and no hand in progress")
                return
            self.engine.start_hand()
            events = self.engine.consume_pre_events()
            hand_id = self.engine.hand.hand_id if self.engine.hand else None
        LOGGER.info("Hand %s started by seat %s", hand_id, session.seat)
        await self._broadcast("start_hand", {"hand_id": hand_id})
        await self._after_change(events)

    async def _handle_add_bot(self, session: ClientSession) -> None:
        try:
            async with self.lock:
                bot = self.engine.add_bot()
        except RuntimeError:
            await self._send_error(session.websocket, code="TABLE_FULL", msg="No seats available")
            return
        LOGGER.info("Bot %s seated at %s by seat %s", bot.name, bot.seat, session.seat)
        await self._publish_lobby()
        await self._publish_snapshots()

    async def _handle_leave(self, session: ClientSession) -> None:
        # Leaving mid-hand is a fold, never a silent removal.
        async with self.lock:
            if self.engine.seats[session.seat] is None:
                return
            if self.pending_action and self.pending_action.seat == session.seat:
                self._clear_pending()
            try:
                events = self.engine.leave(session.seat)
            except InvalidSeatState:
                return
        await self._publish_lobby()
        await self._after_change(events)

    # Turn flow -------------------------------------------------------

    async def _after_change(self, events: List[Dict[str, object]]) -> None:
        await self._broadcast_events(events)
        await self._publish_snapshots()
        async with self.lock:
            finished = self.engine.is_hand_complete()
            end_payload = self.engine.end_hand_payload() if finished and self.engine.hand else None
        if end_payload is not None and any(event.get("ev") in ("HAND_END", "HAND_ABORTED") for event in events):
            self._clear_pending()
            LOGGER.info("Hand %s finished; stacks=%s", end_payload["hand_id"], end_payload["stacks"])
            await self._broadcast("end_hand", end_payload)
            return
        await self._prompt_next_actor()

    async def _prompt_next_actor(self) -> None:
        async with self.lock:
            seat_idx = self.engine.next_actor()
            if seat_idx is None:
                return
            if self.pending_action and self.pending_action.seat == seat_idx:
                return
            player = self.engine.seats[seat_idx]
            is_bot = bool(player and player.is_bot)
            window = None if is_bot else self.engine.legal_actions(seat_idx)

        if is_bot:
            self._set_pending_action(seat_idx)
            self.bot_task = asyncio.create_task(self._bot_turn(seat_idx))
            self.bot_task.add_done_callback(self._bot_task_done)
            return

        session = self.sessions.get(seat_idx)
        if session is not None and window is not None:
            payload = window.as_dict()
            payload["time_ms"] = self.engine.config.move_time_ms
            await self._send_json(session.websocket, "act", payload)
        else:
            LOGGER.info("Seat %s is disconnected; the turn timer will act for it", seat_idx)
        await self._schedule_timer(seat_idx)

    async def _schedule_timer(self, seat_idx: int) -> None:
        move_time_ms = self.engine.config.move_time_ms
        if move_time_ms <= 0:
            self._set_pending_action(seat_idx)
            return
        deadline = time.monotonic() + move_time_ms / 1000
        self.pending_action = PendingAction(seat=seat_idx, deadline=deadline)
        self.pending_action.timer_task = asyncio.create_task(self._run_timer(seat_idx, deadline))

    async def _run_timer(self, seat_idx: int, deadline: float) -> None:
        await asyncio.sleep(max(deadline - time.monotonic(), 0))
        await self._timer_expired(seat_idx)

    async def _timer_expired(self, seat_idx: int) -> None:
        async with self.lock:
            if not self.pending_action or self.pending_action.seat != seat_idx:
                return
            self.pending_action = None
            result = self.engine.force_action(seat_idx)
        if not result.ok:
            LOGGER.warning("Timeout fallback rejected for seat %s: %s", seat_idx, result.reason)
            return
        LOGGER.info("Seat %s timed out", seat_idx)
        await self._broadcast("timeout", {"seat": seat_idx})
        await self._after_change(list(result.events))

    async def _bot_turn(self, seat_idx: int) -> ActionResult:
        delay = self.engine.config.bot_delay_ms / 1000
        if delay > 0:
            await asyncio.sleep(delay)
        async with self.lock:
            if self.pending_action and self.pending_action.seat == seat_idx:
                self.pending_action = None
            result = self.engine.bot_action(seat_idx)
        if result.ok:
            await self._after_change(list(result.events))
        else:
            LOGGER.warning("Bot at seat %s could not act: %s", seat_idx, result.reason)
        return result

    def _set_pending_action(self, seat_idx: int) -> None:
        self.pending_action = PendingAction(seat=seat_idx, deadline=time.monotonic(), timer_task=None)

    def _clear_pending(self) -> None:
        if self.pending_action and self.pending_action.timer_task:
            self.pending_action.timer_task.cancel()
        self.pending_action = None
        # A bot turn that has not acted yet is stale once its turn is cleared.
        task = self.bot_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self.bot_task = None

    def _bot_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Bot turn failed", exc_info=exc)

    # Outbound --------------------------------------------------------

    async def _publish_lobby(self) -> None:
        async with self.lock:
            lobby_state = self.engine.lobby_state()
        await self._broadcast("lobby", lobby_state)

    async def _publish_snapshots(self) -> None:
        async with self.lock:
            payloads = {
                seat_idx: self.engine.snapshot(viewer=seat_idx).as_dict()
                for seat_idx in self.sessions
            }
        for seat_idx, payload in payloads.items():
            session = self.sessions.get(seat_idx)
            if session:
                await self._send_json(session.websocket, "snapshot", payload)

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        targets = [session.websocket for session in self.sessions.values()]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _broadcast_events(self, events: List[Dict[str, object]]) -> None:
        for event in events:
            await self._broadcast("event", event)

    def _config_payload(self) -> Dict[str, object]:
        config = self.engine.config
        return {
            "seats": config.seats,
            "starting_stack": config.starting_stack,
            "sb": config.sb,
            "bb": config.bb,
            "move_time_ms": config.move_time_ms,
        }

    async def _send_json(self, websocket: WebSocketServerProtocol, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: WebSocketServerProtocol, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: WebSocketServerProtocol) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: str) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return message if isinstance(message, dict) else {}
