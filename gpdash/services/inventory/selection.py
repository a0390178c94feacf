"""
Serial Selection Controller
State machine for assigning serial numbers (or quantities) to one sales order line

The transition rules are pure functions over LineAllocation so they can be
tested without a reservation backend. SelectionController adds the
asynchronous reserve/release round-trips and session bookkeeping.
"""
from typing import Dict, List, Optional, Protocol, Set
from dataclasses import dataclass, field, replace
from enum import Enum, Flag, auto
import asyncio
import logging

from gpdash.core.exceptions import BusinessLogicError, IntegrationError, ValidationError
from gpdash.schemas.inventory import (
    AllocationSnapshot, SerialAllocation, ReservationResult, ReleaseResult
)

logger = logging.getLogger(__name__)


class SelectionMode(Flag):
    ALLOCATE = auto()
    FULFILL = auto()
    BOTH = ALLOCATE | FULFILL


class CandidateState(Enum):
    FREE = "free"
    RESERVED_BY_OTHER = "reserved_by_other"
    ALLOCATED_BY_OTHER_ORDER = "allocated_by_other_order"
    SELECTED = "selected"
    SELECTED_AND_FULFILLED = "selected_and_fulfilled"


class ToggleAction(Enum):
    REJECT = "reject"
    RESERVE = "reserve"
    RELEASE = "release"
    FULFILL = "fulfill"
    UNFULFILL = "unfulfill"


@dataclass(frozen=True)
class TogglePlan:
    action: ToggleAction
    target: Optional[CandidateState] = None
    reason: Optional[str] = None


@dataclass
class LineAllocation:
    """
    Allocation state of one order line

    Invariants: fulfilled_serial_numbers is a subset of serial_numbers and
    qty_fulfilled <= qty_allocated <= ordered_quantity.
    """
    ordered_quantity: int
    serial_numbers: List[str] = field(default_factory=list)
    fulfilled_serial_numbers: List[str] = field(default_factory=list)
    qty_allocated: int = 0
    qty_fulfilled: int = 0


@dataclass(frozen=True)
class ToggleResult:
    accepted: bool
    state: CandidateState
    message: Optional[str] = None


def candidate_state(serial_number: str, line: LineAllocation,
                    serial: Optional[SerialAllocation] = None) -> CandidateState:
    """Current state of one serial candidate for this line"""
    if serial_number in line.fulfilled_serial_numbers:
        return CandidateState.SELECTED_AND_FULFILLED
    if serial_number in line.serial_numbers:
        return CandidateState.SELECTED
    if serial is not None:
        # GP allocation is the harder lock and wins over a reservation
        if serial.is_allocated_by_other_order:
            return CandidateState.ALLOCATED_BY_OTHER_ORDER
        if serial.is_reserved_by_other:
            return CandidateState.RESERVED_BY_OTHER
    return CandidateState.FREE


def plan_toggle(state: CandidateState, mode: SelectionMode, line: LineAllocation,
                serial: Optional[SerialAllocation] = None,
                selected_count: Optional[int] = None) -> TogglePlan:
    """
    Decide what toggling a candidate does

    selected_count overrides len(line.serial_numbers) so callers can count
    reservations still in flight against the ordered quantity.
    """
    if state == CandidateState.ALLOCATED_BY_OTHER_ORDER:
        order = serial.allocated_to_sop_number if serial else None
        return TogglePlan(ToggleAction.REJECT, reason=f"Allocated to order {order or 'another order'}")

    if state == CandidateState.RESERVED_BY_OTHER:
        holder = (serial.reserved_by_name or serial.reserved_by) if serial else None
        return TogglePlan(ToggleAction.REJECT, reason=f"Reserved by {holder or 'another user'}")

    if mode == SelectionMode.FULFILL:
        if state == CandidateState.SELECTED:
            return TogglePlan(ToggleAction.FULFILL, CandidateState.SELECTED_AND_FULFILLED)
        if state == CandidateState.SELECTED_AND_FULFILLED:
            return TogglePlan(ToggleAction.UNFULFILL, CandidateState.SELECTED)
        return TogglePlan(ToggleAction.REJECT, reason="Serial must be allocated before it can be fulfilled")

    if state == CandidateState.FREE:
        count = len(line.serial_numbers) if selected_count is None else selected_count
        if count >= line.ordered_quantity:
            return TogglePlan(
                ToggleAction.REJECT,
                reason=f"Cannot select more than the ordered quantity ({line.ordered_quantity})"
            )
        target = (CandidateState.SELECTED_AND_FULFILLED if SelectionMode.FULFILL in mode
                  else CandidateState.SELECTED)
        return TogglePlan(ToggleAction.RESERVE, target)

    if state == CandidateState.SELECTED and SelectionMode.FULFILL in mode:
        # Already held, so fulfilling needs no reservation
        return TogglePlan(ToggleAction.FULFILL, CandidateState.SELECTED_AND_FULFILLED)

    return TogglePlan(ToggleAction.RELEASE, CandidateState.FREE)


def apply_toggle(line: LineAllocation, serial_number: str, plan: TogglePlan) -> LineAllocation:
    """Return the line with the planned transition applied"""
    if plan.action == ToggleAction.REJECT:
        return line

    serials = [sn for sn in line.serial_numbers if sn != serial_number]
    fulfilled = [sn for sn in line.fulfilled_serial_numbers if sn != serial_number]

    if plan.target in (CandidateState.SELECTED, CandidateState.SELECTED_AND_FULFILLED):
        serials.append(serial_number)
    if plan.target == CandidateState.SELECTED_AND_FULFILLED:
        fulfilled.append(serial_number)

    return replace(
        line,
        serial_numbers=serials,
        fulfilled_serial_numbers=fulfilled,
        qty_allocated=len(serials),
        qty_fulfilled=len(fulfilled)
    )


def set_allocated_qty(line: LineAllocation, qty: int) -> LineAllocation:
    """Non-serialized lines: clamp to [0, ordered_quantity]"""
    allocated = max(0, min(int(qty), line.ordered_quantity))
    return replace(line, qty_allocated=allocated, qty_fulfilled=min(line.qty_fulfilled, allocated))


def set_fulfilled_qty(line: LineAllocation, qty: int) -> LineAllocation:
    """Non-serialized lines: clamp to [0, qty_allocated]"""
    return replace(line, qty_fulfilled=max(0, min(int(qty), line.qty_allocated)))


def change_mode(line: LineAllocation, old_mode: SelectionMode, new_mode: SelectionMode,
                is_serialized: bool) -> LineAllocation:
    """
    Apply a mode switch to the line

    Selections are never touched. Enabling Fulfill on a non-serialized line
    seeds the fulfilled quantity from the allocated one.
    """
    if not new_mode:
        raise ValidationError("At least one of Allocate or Fulfill must be active")

    fulfill_enabled = SelectionMode.FULFILL in new_mode and SelectionMode.FULFILL not in old_mode
    if fulfill_enabled and not is_serialized and line.qty_fulfilled == 0:
        return replace(line, qty_fulfilled=line.qty_allocated)
    return line


class ReservationGateway(Protocol):
    """Reservation backend as seen by the controller (HTTP API or in-process)"""

    async def reserve(self, item_number: str, serial_number: str) -> ReservationResult: ...

    async def release(self, item_number: str, serial_number: str) -> ReleaseResult: ...

    async def get_allocation_data(self, item_number: str, site_id: str,
                                  current_order_number: Optional[str] = None,
                                  current_order_type: Optional[int] = None) -> AllocationSnapshot: ...


class SelectionController:
    """
    Drives serial selection for one order line

    Toggles of the same serial are serialized by an in-flight marker; toggles
    of different serials may overlap. Only reservations acquired by this
    controller are cleaned up on close.
    """

    def __init__(
        self,
        gateway: ReservationGateway,
        snapshot: AllocationSnapshot,
        line: LineAllocation,
        current_order_number: Optional[str] = None,
        current_order_type: Optional[int] = None,
        mode: SelectionMode = SelectionMode.ALLOCATE
    ):
        if not mode:
            raise ValidationError("At least one of Allocate or Fulfill must be active")
        self.gateway = gateway
        self.snapshot = snapshot
        self.line = line
        self.mode = mode
        self.current_order_number = current_order_number
        self.current_order_type = current_order_type
        self.closed = False

        self._initial_line = replace(
            line,
            serial_numbers=list(line.serial_numbers),
            fulfilled_serial_numbers=list(line.fulfilled_serial_numbers)
        )
        # Serial -> event set once its reserve/release round-trip finishes
        self._in_flight: Dict[str, asyncio.Event] = {}
        self._reserving: Set[str] = set()
        self._session_acquired: Set[str] = set()
        # Pre-existing holds are never released on close
        self._held_before: Set[str] = {
            serial.serial_number for serial in snapshot.serials if serial.is_reserved_by_me
        }

    @classmethod
    async def open(
        cls,
        gateway: ReservationGateway,
        item_number: str,
        site_id: str,
        line: LineAllocation,
        current_order_number: Optional[str] = None,
        current_order_type: Optional[int] = None,
        mode: SelectionMode = SelectionMode.ALLOCATE
    ) -> "SelectionController":
        snapshot = await gateway.get_allocation_data(
            item_number, site_id, current_order_number, current_order_type
        )
        return cls(gateway, snapshot, line, current_order_number, current_order_type, mode)

    @property
    def item_number(self) -> str:
        return self.snapshot.item_number

    @property
    def session_acquired(self) -> Set[str]:
        return set(self._session_acquired)

    def state_of(self, serial_number: str) -> CandidateState:
        return candidate_state(serial_number, self.line, self.snapshot.find_serial(serial_number))

    def set_mode(self, mode: SelectionMode) -> None:
        self.line = change_mode(self.line, self.mode, mode, self.snapshot.is_serialized)
        self.mode = mode

    def set_allocated_qty(self, qty: int) -> LineAllocation:
        self._require_quantity_line()
        self.line = set_allocated_qty(self.line, qty)
        return self.line

    def set_fulfilled_qty(self, qty: int) -> LineAllocation:
        self._require_quantity_line()
        self.line = set_fulfilled_qty(self.line, qty)
        return self.line

    async def toggle(self, serial_number: str) -> ToggleResult:
        """Toggle one serial according to the active mode(s)"""
        if self.closed:
            raise BusinessLogicError("Selection session is closed")

        state = self.state_of(serial_number)

        if serial_number in self._in_flight:
            return ToggleResult(False, state, f"Serial {serial_number} is still being processed")

        plan = plan_toggle(
            state, self.mode, self.line,
            serial=self.snapshot.find_serial(serial_number),
            selected_count=len(self.line.serial_numbers) + len(self._reserving)
        )

        if plan.action == ToggleAction.REJECT:
            return ToggleResult(False, state, plan.reason)

        if plan.action in (ToggleAction.FULFILL, ToggleAction.UNFULFILL):
            self.line = apply_toggle(self.line, serial_number, plan)
            return ToggleResult(True, plan.target)

        done = asyncio.Event()
        self._in_flight[serial_number] = done
        try:
            if plan.action == ToggleAction.RESERVE:
                self._reserving.add(serial_number)
                try:
                    result = await self.gateway.reserve(self.item_number, serial_number)
                finally:
                    self._reserving.discard(serial_number)
                if not result.success:
                    if result.reserved_by:
                        return ToggleResult(False, state, f"Reserved by {result.reserved_by}")
                    return ToggleResult(False, state, result.error or "Reservation unavailable")
                if serial_number not in self._held_before:
                    self._session_acquired.add(serial_number)
                if self.closed:
                    # close() is waiting on us and releases the new hold
                    return ToggleResult(False, state, "Selection session is closed")
            else:
                released = await self.gateway.release(self.item_number, serial_number)
                if not released.success:
                    return ToggleResult(False, state, f"Could not release serial {serial_number}")
                self._session_acquired.discard(serial_number)

            self.line = apply_toggle(self.line, serial_number, plan)
            if not self.closed:
                await self.refresh()
            return ToggleResult(True, plan.target)

        except IntegrationError as e:
            logger.error(f"Reservation call for {self.item_number}/{serial_number} failed: {e}")
            return ToggleResult(False, state, "Reservation service unavailable")
        finally:
            del self._in_flight[serial_number]
            done.set()

    async def refresh(self) -> AllocationSnapshot:
        """Re-read allocation data so reservations and GP state stay in step"""
        try:
            self.snapshot = await self.gateway.get_allocation_data(
                self.snapshot.item_number,
                self.snapshot.site_id,
                self.current_order_number,
                self.current_order_type
            )
        except IntegrationError as e:
            logger.warning(f"Keeping previous allocation data for {self.item_number}: {e}")
        return self.snapshot

    async def close(self, cancelled: bool = False) -> List[str]:
        """
        Release reservations acquired in this session that the line no longer uses

        On cancel every session-acquired reservation is released and the line
        reverts to its initial state. Holds that existed before the session are
        left alone. Toggles still in flight are awaited first. Failures are
        logged and not retried.
        """
        self.closed = True
        pending = list(self._in_flight.values())
        if pending:
            await asyncio.gather(*(event.wait() for event in pending))

        if cancelled:
            to_release = set(self._session_acquired)
            self.line = self._initial_line
        else:
            to_release = self._session_acquired - set(self.line.serial_numbers)

        serials = sorted(to_release)
        results = await asyncio.gather(
            *(self.gateway.release(self.item_number, sn) for sn in serials),
            return_exceptions=True
        )
        for serial_number, result in zip(serials, results):
            if isinstance(result, Exception):
                logger.warning(f"Release of {self.item_number}/{serial_number} on close failed: {result}")
            elif not result.success:
                logger.warning(f"Release of {self.item_number}/{serial_number} on close was refused")

        self._session_acquired -= to_release
        return serials

    def _require_quantity_line(self) -> None:
        if self.snapshot.is_serialized:
            raise ValidationError("Serialized lines are allocated by serial number")
