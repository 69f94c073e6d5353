from __future__ import annotations
import os, json, asyncio, time
from dataclasses import asdict
from ..ports.faults import FaultSink
from ..domain.models import ChunkFault, DecodeFault

class JSONLFaultLog(FaultSink):
    """
    One JSON line per fault. Chunk faults carry the skipped range so it can be rescanned
    with `--start-block/--target-block`.
    """
    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = asyncio.Lock()

    @staticmethod
    def to_record(fault: ChunkFault | DecodeFault) -> dict:
        if isinstance(fault, ChunkFault):
            return {"kind": "chunk", "from_block": fault.range.from_block, "to_block": fault.range.to_block,
                    "attempts": fault.attempts, "error": fault.error, "reported_at": time.time()}
        return {"kind": "decode", **asdict(fault), "reported_at": time.time()}

    async def report(self, fault: ChunkFault | DecodeFault) -> None:
        line = json.dumps(self.to_record(fault), separators=(",", ":")) + "\n"
        async with self._lock:
            with open(self.path, "a") as f:
                f.write(line); f.flush(); os.fsync(f.fileno())
