#!/usr/bin/env python3
"""
Renderer Instances

Live per-item renderer state: the lifecycle state machine and the playhead, plus the
derived document an instance renders from and the properties it was injected from.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Dict, Mapping, Optional

from composer.core import get_logger

from .sdk import RendererDescriptor

log = get_logger("instances")


class InstanceState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"
    STOPPED = "stopped"


@dataclass
class Playhead:
    frame: int = 0
    running: bool = True
    released: bool = False


class RendererInstance:
    """
    Minimal state machine for one rendered timeline item:

        loading -> ready | errored
        any     -> stopped (terminal)

    Suspension is orthogonal to the state: a suspended instance keeps its state but
    its playhead is frozen at paused_frame. All transitions take the instance lock, so
    a resume can never revive an instance that was stopped concurrently.
    """

    def __init__(self, item_id: str, asset_type: str, descriptor: Optional[RendererDescriptor], sequence: int = 0):
        self.item_id = item_id
        self.asset_type = asset_type
        self.descriptor = descriptor
        self.state = InstanceState.LOADING
        self.playhead = Playhead()
        self.document: Optional[Dict[str, Any]] = None
        self.injected_from: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.suspended = False
        self.paused_frame: Optional[int] = None
        self.last_active = sequence
        self.lock = Lock()

    def __repr__(self) -> str:
        flag = " suspended" if self.suspended else ""
        return f"<RendererInstance {self.asset_type}:{self.item_id} {self.state.value}{flag}>"

    @property
    def is_live(self) -> bool:
        return self.state != InstanceState.STOPPED

    def touch(self, sequence: int) -> None:
        self.last_active = sequence

    def attach(
        self,
        document: Optional[Dict[str, Any]] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        loading/errored -> ready with an (optional) derived document.

        properties is a snapshot of the item properties the document was injected from;
        the vector handler re-injects when the item's properties no longer match it.
        """
        with self.lock:
            if self.state == InstanceState.STOPPED:
                return False
            self.document = document
            self.injected_from = copy.deepcopy(dict(properties)) if properties is not None else None
            self.error = None
            self.state = InstanceState.READY
            return True

    def fail(self, reason: str) -> bool:
        with self.lock:
            if self.state == InstanceState.STOPPED:
                return False
            self.error = reason
            self.state = InstanceState.ERRORED
        log.warning(f"[{self.item_id}] {self.asset_type} errored: {reason}")
        return True

    def recover(self) -> bool:
        """errored -> ready after a successful render. The derived document is kept."""
        with self.lock:
            if self.state != InstanceState.ERRORED:
                return False
            self.error = None
            self.state = InstanceState.READY
        log.info(f"[{self.item_id}] {self.asset_type} recovered")
        return True

    def seek(self, frame: int) -> bool:
        """Move the playhead. Ignored while suspended or stopped."""
        with self.lock:
            if self.state == InstanceState.STOPPED or self.suspended:
                return False
            self.playhead.frame = frame
            return True

    def suspend(self) -> bool:
        with self.lock:
            if self.state == InstanceState.STOPPED or self.suspended:
                return False
            self.paused_frame = self.playhead.frame
            self.playhead.running = False
            self.suspended = True
        log.info(f"[{self.item_id}] suspended at frame {self.paused_frame}")
        return True

    def resume(self) -> bool:
        """Resume exactly from the paused frame. No-op for stopped instances."""
        with self.lock:
            if self.state == InstanceState.STOPPED or not self.suspended:
                return False
            self.playhead.frame = self.paused_frame if self.paused_frame is not None else self.playhead.frame
            self.playhead.running = True
            self.suspended = False
            self.paused_frame = None
        log.info(f"[{self.item_id}] resumed at frame {self.playhead.frame}")
        return True

    def stop(self) -> None:
        """Synchronously stop and release the playhead. Idempotent."""
        with self.lock:
            if self.state == InstanceState.STOPPED:
                return
            self.state = InstanceState.STOPPED
            self.playhead.running = False
            self.playhead.released = True
            self.suspended = False
            self.document = None
            self.injected_from = None
        log.debug(f"[{self.item_id}] stopped")
