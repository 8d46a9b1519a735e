"""
Boundary memory manager.

Tracks result buffers handed across the call boundary. Each buffer is
allocated once, owned by the caller until released, and released exactly
once with the size it was allocated with. Misuse raises
BoundaryProtocolError instead of corrupting state.
"""

import threading
from typing import Dict


class BoundaryProtocolError(Exception):
    """Raised on release of an unknown handle, double release or size mismatch."""
    pass


class BoundaryAllocator:
    """
    Handle-based allocator for boundary buffers.

    Safe to share between threads running independent solve calls.

    Attributes:
        allocations: Number of allocate calls that succeeded
        releases: Number of release calls that succeeded
    """

    def __init__(self):
        self._buffers: Dict[int, bytearray] = {}
        # Handles are issued in increasing order, so any handle up to the
        # last one issued that is not live has been released.
        self._last_handle = 0
        self._lock = threading.Lock()
        self.allocations = 0
        self.releases = 0

    def allocate(self, size: int) -> int:
        """
        Allocate a zero-filled buffer.

        Args:
            size: Buffer length in bytes (must be positive)

        Returns:
            Opaque integer handle

        Raises:
            ValueError: If size is not positive
        """
        if size <= 0:
            raise ValueError(f"Allocation size must be positive, got {size}")

        buffer = bytearray(size)
        with self._lock:
            self._last_handle += 1
            handle = self._last_handle
            self._buffers[handle] = buffer
            self.allocations += 1
        return handle

    def buffer(self, handle: int) -> memoryview:
        """
        Writable view of a live buffer.

        Raises:
            BoundaryProtocolError: If the handle is not live
        """
        with self._lock:
            try:
                return memoryview(self._buffers[handle])
            except KeyError:
                raise BoundaryProtocolError(self._describe_dead_handle(handle))

    def read(self, handle: int) -> bytes:
        """Copy a live buffer's contents out."""
        return bytes(self.buffer(handle))

    def release(self, handle: int, size: int) -> None:
        """
        Release a buffer previously returned by allocate.

        Args:
            handle: Handle from allocate
            size: The size passed to allocate

        Raises:
            BoundaryProtocolError: On double release, unknown handle or size mismatch
        """
        with self._lock:
            buffer = self._buffers.get(handle)
            if buffer is None:
                raise BoundaryProtocolError(self._describe_dead_handle(handle))
            if len(buffer) != size:
                raise BoundaryProtocolError(
                    f"Release size {size} does not match allocation size {len(buffer)} "
                    f"for handle {handle}"
                )
            del self._buffers[handle]
            self.releases += 1

    @property
    def live_handles(self) -> int:
        with self._lock:
            return len(self._buffers)

    def _describe_dead_handle(self, handle: int) -> str:
        if isinstance(handle, int) and 0 < handle <= self._last_handle:
            return f"Handle {handle} was already released"
        return f"Handle {handle} was never allocated"
