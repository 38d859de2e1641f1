import os
import json
import logging
import asyncio
from typing import Optional

import aiofiles
from influxdb_client import InfluxDBClient
from influxdb_client.client.write_api import WriteOptions

from errors import SinkWriteError
from models import BackendConfig
from records import ResultRecord

logger = logging.getLogger("NetProbe.Storage")


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Sink:
    """
    Shared, non-blocking write path for measurement points.

    write() may be called by any number of concurrent probes and never waits
    on I/O. Write failures are pushed onto the `errors` queue and drained by a
    single consumer that logs and discards them.
    """

    def __init__(self):
        self.errors: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._error_task: Optional[asyncio.Task] = None

    async def start(self):
        self._loop = asyncio.get_running_loop()
        self._error_task = asyncio.create_task(self._drain_errors())

    def write(self, record: ResultRecord):
        raise NotImplementedError("Subclasses must implement write()")

    def report_error(self, error: SinkWriteError):
        """Queue a write failure for the error consumer. Safe to call from any thread."""
        if self._loop is None:
            logger.error(f"Backend write error before sink start: {error}")
            return
        if _running_loop() is self._loop:
            self.errors.put_nowait(error)
            return
        try:
            self._loop.call_soon_threadsafe(self.errors.put_nowait, error)
        except RuntimeError:
            # Event loop already closed, nobody left to drain the queue
            logger.error(f"Backend write error after shutdown: {error}")

    async def _drain_errors(self):
        while True:
            error = await self.errors.get()
            logger.error(f"Backend write error: {error}")
            self.errors.task_done()

    async def close(self):
        if self._error_task is not None:
            # Let already reported errors reach the log before stopping the consumer
            await asyncio.sleep(0)
            await self.errors.join()
            self._error_task.cancel()
            self._error_task = None


class InfluxSink(Sink):
    """Batches points to InfluxDB through the client's background write API"""

    def __init__(self, client: InfluxDBClient, bucket: str, org: str, write_options: Optional[WriteOptions] = None):
        super().__init__()
        self.influx_client = client
        self.bucket = bucket
        self.org = org
        # No retries: a failed batch is reported once and dropped
        options = write_options or WriteOptions(batch_size=500, flush_interval=1_000, max_retries=0)
        self.write_api = client.write_api(write_options=options, error_callback=self._on_error)

    @classmethod
    def from_config(cls, backend: BackendConfig) -> "InfluxSink":
        client = InfluxDBClient(url=backend.url, token=backend.token, org=backend.organisation)
        logger.info(f"Using InfluxDB at {backend.url}, bucket '{backend.bucket}'")
        return cls(client, bucket=backend.bucket, org=backend.organisation)

    def write(self, record: ResultRecord):
        self.write_api.write(bucket=self.bucket, org=self.org, record=record.to_point())

    def _on_error(self, conf, data, exception):
        # Runs on the write API's background thread
        self.report_error(SinkWriteError(f"Failed to write batch to bucket {conf[0]}", cause=exception))

    async def close(self):
        # Flushing is blocking network I/O
        await asyncio.to_thread(self.write_api.close)
        await asyncio.to_thread(self.influx_client.close)
        await super().close()


class JsonFileSink(Sink):
    """Fallback sink appending one JSON object per line when no backend is configured"""

    def __init__(self, log_file: Optional[str] = None, max_lines: int = 1_000):
        super().__init__()
        self.log_file = log_file or os.getenv("LOG_FILE", "data/measurements.jsonl")
        self.max_lines = max_lines
        self._pending: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    async def start(self):
        await super().start()
        directory = os.path.dirname(self.log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info(f"InfluxDB not configured. Writing measurements to {self.log_file}")

    def write(self, record: ResultRecord):
        self._pending.put_nowait(record)

    async def _write_loop(self):
        while True:
            record = await self._pending.get()
            try:
                await self._append(record)
            except OSError as e:
                self.report_error(SinkWriteError(f"Failed to append to {self.log_file}", cause=e))
            finally:
                self._pending.task_done()

    async def _append(self, record: ResultRecord):
        async with self._write_lock:
            async with aiofiles.open(self.log_file, "a") as f:
                await f.write(json.dumps(record.to_dict()) + "\n")
            await self._rotate_log()

    async def _rotate_log(self):
        """Keep only the last max_lines entries in the log file."""
        async with aiofiles.open(self.log_file, "r") as f:
            content = await f.read()
            lines = content.splitlines(keepends=True)

        if len(lines) > self.max_lines:
            async with aiofiles.open(self.log_file, "w") as f:
                await f.writelines(lines[-self.max_lines:])

    async def close(self):
        if self._writer_task is not None:
            await self._pending.join()
            self._writer_task.cancel()
            self._writer_task = None
        await super().close()


def create_sink(backend: Optional[BackendConfig]) -> Sink:
    if backend is None:
        return JsonFileSink()
    return InfluxSink.from_config(backend)
