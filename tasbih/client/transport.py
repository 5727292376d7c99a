import asyncio
import time

import aiohttp
import structlog
from pydantic import ValidationError

from ..errors import Transient, error_from_payload
from ..models import CounterSnapshot, IncrementResponse

log = structlog.get_logger()


class HttpCounterTransport:
    """
    Client side of the HTTP API.

    Error answers are turned back into the service's own exceptions.
    Timeouts, connection failures, 5xx answers and bodies that do not parse
    all become Transient. Only GETs are retried on Transient; writes go out
    exactly once.
    """

    def __init__(self, base_url, api_prefix="/api", timeout=5.0, retries=1, retry_backoff_ms=150):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = max(int(retries), 1)
        self.retry_backoff_ms = max(int(retry_backoff_ms), 0)
        self.session = None
        self.stats = {
            "requests": 0,
            "failures": 0,
            "retries": 0,
            "last_latency_ms": None,
        }

    @classmethod
    def from_config(cls, config):
        return cls(
            config.backend_url,
            api_prefix=config.api_prefix,
            timeout=config.client_timeout,
            retries=config.client_http_retries,
            retry_backoff_ms=config.client_http_retry_backoff_ms,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None

    def _session(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    def _url(self, path):
        return f"{self.base_url}{self.api_prefix}/tasbih{path}"

    async def _request_once(self, method, url, body):
        started = time.time()
        try:
            async with self._session().request(method, url, json=body) as resp:
                status = resp.status
                try:
                    data = await resp.json()
                except (aiohttp.ContentTypeError, ValueError):
                    data = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as error:
            raise Transient(f"{method} {url} failed: {error}") from error
        finally:
            self.stats["last_latency_ms"] = round((time.time() - started) * 1000, 2)

        if status >= 400:
            raise error_from_payload(status, data)
        if data is None:
            raise Transient(f"{method} {url} returned an unreadable body")
        return data

    async def _request(self, method, path, body=None):
        url = self._url(path)
        attempts = self.retry_attempts if method == "GET" else 1
        last_error = None
        for attempt in range(1, attempts + 1):
            self.stats["requests"] += 1
            try:
                return await self._request_once(method, url, body)
            except Transient as error:
                self.stats["failures"] += 1
                last_error = error
                if attempt < attempts:
                    self.stats["retries"] += 1
                    await asyncio.sleep((self.retry_backoff_ms / 1000.0) * attempt)

        log.debug("http_request_failed", method=method, url=url, error=str(last_error))
        raise last_error

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as error:
            raise Transient(f"unexpected response shape: {error}") from error

    async def create(self, goal, created_by):
        data = await self._request("POST", "/create", {"goal": goal, "created_by": created_by})
        return self._parse(CounterSnapshot, data)

    async def get_state(self, counter_id):
        data = await self._request("GET", f"/{counter_id}")
        return self._parse(CounterSnapshot, data)

    async def join(self, counter_id, participant_name):
        data = await self._request(
            "POST", f"/{counter_id}/join", {"participant_name": participant_name}
        )
        return self._parse(CounterSnapshot, data)

    async def increment(self, counter_id, participant_name):
        data = await self._request(
            "POST", f"/{counter_id}/increment", {"participant_name": participant_name}
        )
        return self._parse(IncrementResponse, data)

    async def reset(self, counter_id, requesting_name):
        data = await self._request(
            "POST", f"/{counter_id}/reset", {"requesting_name": requesting_name}
        )
        return self._parse(CounterSnapshot, data)


class LocalCounterTransport:
    """Same interface as HttpCounterTransport, calling a CounterService in process."""

    def __init__(self, service):
        self.service = service

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def close(self):
        pass

    async def create(self, goal, created_by):
        counter = await asyncio.to_thread(self.service.create_counter, goal, created_by)
        return CounterSnapshot.model_validate(counter.to_dict())

    async def get_state(self, counter_id):
        counter = await asyncio.to_thread(self.service.get_state, counter_id)
        return CounterSnapshot.model_validate(counter.to_dict())

    async def join(self, counter_id, participant_name):
        counter = await asyncio.to_thread(self.service.join_counter, counter_id, participant_name)
        return CounterSnapshot.model_validate(counter.to_dict())

    async def increment(self, counter_id, participant_name):
        outcome = await asyncio.to_thread(self.service.increment, counter_id, participant_name)
        return IncrementResponse.model_validate(outcome.to_dict())

    async def reset(self, counter_id, requesting_name):
        counter = await asyncio.to_thread(self.service.reset, counter_id, requesting_name)
        return CounterSnapshot.model_validate(counter.to_dict())
