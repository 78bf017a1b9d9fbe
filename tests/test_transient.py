import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from contest_hub.errors import Transient
from contest_hub.utils import transient as transient_module
from contest_hub.utils.transient import transient


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


@pytest.mark.asyncio
async def test_idempotent_call_is_retried_once(settings_env):
    calls = []

    @transient(retry=True)
    async def read():
        calls.append(1)
        if len(calls) == 1:
            raise _operational_error()
        return "ok"

    assert await read() == "ok"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_idempotent_call_is_not_retried(settings_env):
    calls = []

    @transient()
    async def write():
        calls.append(1)
        raise _operational_error()

    with pytest.raises(Transient):
        await write()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_timeout_becomes_transient(settings_env):
    settings_env.setenv("REQUEST_TIMEOUT_SECONDS", "1")
    settings_env.setenv("TRANSIENT_RETRIES", "0")

    @transient(retry=True)
    async def slow():
        await asyncio.sleep(5)

    with pytest.raises(Transient):
        await slow()


@pytest.mark.asyncio
async def test_integrity_errors_pass_through(settings_env):
    @transient(retry=True)
    async def insert():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(IntegrityError):
        await insert()


@pytest.mark.asyncio
async def test_retries_back_off_exponentially(settings_env):
    settings_env.setenv("TRANSIENT_RETRIES", "2")
    real_sleep = asyncio.sleep
    delays = []

    async def record_sleep(delay):
        delays.append(delay)
        await real_sleep(0)

    settings_env.setattr(transient_module.asyncio, "sleep", record_sleep)
    calls = []

    @transient(retry=True)
    async def read():
        calls.append(1)
        if len(calls) < 3:
            raise _operational_error()
        return "ok"

    assert await read() == "ok"
    assert delays == [transient_module.RETRY_BASE_DELAY, transient_module.RETRY_BASE_DELAY * 2]
