"""
Integration Tests

End-to-end tests that drive Bucket -> AsyncKVClient -> trampolines ->
CompletionCookie -> user callback.

Run with: python -m pytest tests/test_integration.py -v
"""

import asyncio

import pytest

from kvbridge.bridge.errors import OperationScheduleError, UnsupportedResponseVersion
from kvbridge.bridge.host import Cas, scope_depth
from kvbridge.bucket import Bucket
from kvbridge.client.client import AsyncKVClient
from kvbridge.protocol.commands import ConfigurationStatus, ErrorCode
from tests.conftest import Recorder, find_key_on_node


def stored_cas(bucket: Bucket, key, value, **kwargs) -> Cas:
    rec = Recorder()
    bucket.set(key, value, rec, **kwargs)
    bucket.wait()
    data, error, _, cas = rec.calls[0]
    assert error is False
    return cas


@pytest.mark.integration
class TestEndToEnd:
    """End-to-end scenarios."""

    def test_read_success(self, bucket, recorder):
        """Test that a stored value comes back with its CAS and flags."""
        cas = stored_cas(bucket, "k1", "v1")

        bucket.get("k1", recorder, data="user")
        bucket.wait()

        assert recorder.calls == [("user", False, b"k1", cas, 0, b"v1")]
        assert isinstance(cas, Cas)

    def test_read_missing(self, bucket, recorder):
        """Test the failure layout for a missing key."""
        bucket.get("missing", recorder, data="user")
        bucket.wait()

        assert recorder.calls == [("user", ErrorCode.KEY_ENOENT, b"missing", None, None, None)]
        error = recorder.calls[0][1]
        assert error == 0x0D
        assert error

    def test_counter(self, bucket, recorder):
        """Test that incr reports (data, error, key, cas, value)."""
        stored_cas(bucket, "ctr", "6")

        bucket.incr("ctr", recorder, data="user")
        bucket.wait()

        data, error, key, cas, value = recorder.calls[0]
        assert (data, error, key, value) == ("user", False, b"ctr", 7)
        assert isinstance(cas, Cas)

    def test_counter_create_and_decr(self, bucket):
        """Test counter creation with initial and decrement."""
        first, second = Recorder(), Recorder()
        bucket.incr("hits", first, initial=10)
        bucket.wait()
        bucket.decr("hits", second, delta=3)
        bucket.wait()

        assert first.calls[0][4] == 10
        assert second.calls[0][4] == 7

    def test_counter_missing(self, bucket, recorder):
        """Test that incr without initial fails on a missing key."""
        bucket.incr("nope", recorder)
        bucket.wait()
        assert recorder.calls == [(None, ErrorCode.KEY_ENOENT, b"nope", None, None)]

    def test_store_modes(self, bucket):
        """Test add/replace/append/prepend through the bridge."""
        add, add_again, replace, append, prepend, read = (Recorder() for _ in range(6))

        bucket.add("doc", "mid", add)
        bucket.wait()
        bucket.add("doc", "x", add_again)
        bucket.replace("doc", "mid", replace)
        bucket.wait()
        bucket.append("doc", "-end", append)
        bucket.prepend("doc", "start-", prepend)
        bucket.wait()
        bucket.get("doc", read)
        bucket.wait()

        assert add.calls[0][1] is False
        assert add_again.calls == [(None, ErrorCode.KEY_EEXISTS, b"doc", None)]
        assert replace.calls[0][1] is False
        assert read.calls[0][5] == b"start-mid-end"

    def test_cas_mismatch(self, bucket, recorder):
        """Test optimistic concurrency with a stale CAS."""
        stale = stored_cas(bucket, "doc", "one")
        stored_cas(bucket, "doc", "two")

        bucket.set("doc", "three", recorder, cas=stale)
        bucket.wait()

        assert recorder.calls == [(None, ErrorCode.KEY_EEXISTS, b"doc", None)]

    def test_cas_match(self, bucket, recorder):
        """Test that the CAS handed to a callback can be used for the next write."""
        current = stored_cas(bucket, "doc", "one")

        bucket.set("doc", "two", recorder, cas=current)
        bucket.wait()

        assert recorder.calls[0][1] is False
        assert int(recorder.calls[0][3]) > int(current)

    def test_remove_and_touch(self, bucket):
        """Test the key-only layouts."""
        stored_cas(bucket, "doc", "v")
        touched, removed, removed_again = Recorder(), Recorder(), Recorder()

        bucket.touch("doc", touched, data=1, exptime=60)
        bucket.wait()
        bucket.remove("doc", removed, data=2)
        bucket.wait()
        bucket.remove("doc", removed_again, data=3)
        bucket.wait()

        assert touched.calls == [(1, False, b"doc")]
        assert removed.calls == [(2, False, b"doc")]
        assert removed_again.calls == [(3, ErrorCode.KEY_ENOENT, b"doc")]

    def test_binary_key(self, bucket, recorder):
        """Test that keys with embedded NUL bytes round-trip."""
        key = b"bin\x00key\xff"
        stored_cas(bucket, key, b"\x00value")

        bucket.get(key, recorder)
        bucket.wait()

        assert recorder.calls[0][2] == key
        assert recorder.calls[0][5] == b"\x00value"


@pytest.mark.integration
class TestMultiKey:
    """Test calls that fan out into several completions."""

    def test_multi_get_one_callback_per_key(self, bucket, recorder):
        """Test that every key is reported with the same user data."""
        stored_cas(bucket, "a", "1")
        stored_cas(bucket, "b", "2")

        call_id = bucket.get(["a", "b", "c"], recorder, data="batch")
        cookie = bucket.cookies.lookup(call_id)
        assert cookie.remaining == 3

        bucket.wait()

        by_key = {call[2]: call for call in recorder.calls}
        assert set(by_key) == {b"a", b"b", b"c"}
        assert all(call[0] == "batch" for call in recorder.calls)
        assert by_key[b"a"][5] == b"1"
        assert by_key[b"c"][1] == ErrorCode.KEY_ENOENT

        assert cookie.disposed
        assert bucket.outstanding == 0

    def test_cookie_alive_until_last_completion(self, bucket, cluster_config):
        """Test that the cookie survives until every key has completed."""
        keys = [find_key_on_node(cluster_config, 1, p) for p in ("a", "b")]
        observed = []

        def on_get(data, error, key, cas, flags, value):
            observed.append(bucket.outstanding)

        bucket.get(keys, on_get)
        bucket.wait()

        assert observed == [1, 1]
        assert bucket.outstanding == 0

    def test_multi_touch(self, bucket, recorder):
        """Test that touch accepts several keys."""
        stored_cas(bucket, "a", "1")
        bucket.touch(["a", "b"], recorder, exptime=30)
        bucket.wait()

        results = sorted((call[2], call[1]) for call in recorder.calls)
        assert results == [(b"a", False), (b"b", ErrorCode.KEY_ENOENT)]


@pytest.mark.integration
class TestReentrancy:
    """Test callbacks that issue new operations."""

    def test_callback_issues_operation_on_same_bucket(self, bucket):
        """Test that a nested call does not disturb the outer one."""
        inner = Recorder()
        outer_seen = []

        def on_outer(data, error, key, cas, flags, value):
            bucket.set("k2", "v2", inner, data="inner")
            outer_seen.append((data, bucket.outstanding, scope_depth()))

        stored_cas(bucket, "k1", "v1")
        outer_id = bucket.get("k1", on_outer, data="outer")
        bucket.wait()

        assert outer_seen == [("outer", 2, 1)]
        assert inner.calls[0][:3] == ("inner", False, b"k2")
        assert outer_id not in bucket.cookies
        assert bucket.outstanding == 0

    def test_chain_of_calls(self, bucket):
        """Test a callback chain set -> get -> remove."""
        trail = []

        def on_remove(data, error, key):
            trail.append(("remove", error))

        def on_get(data, error, key, cas, flags, value):
            trail.append(("get", value))
            bucket.remove(key, on_remove)

        def on_set(data, error, key, cas):
            trail.append(("set", error))
            bucket.get(key, on_get)

        bucket.set("chain", "link", on_set)
        bucket.wait()

        assert trail == [("set", False), ("get", b"link"), ("remove", False)]
        assert bucket.outstanding == 0

    def test_failing_callback_does_not_leak(self, bucket):
        """Test that a raising callback still retires its cookie."""
        def explode(*args):
            raise RuntimeError("user callback failed")

        bucket.get("k", explode)
        with pytest.raises(RuntimeError):
            bucket.wait()

        assert bucket.outstanding == 0
        assert scope_depth() == 0


@pytest.mark.integration
class TestFailures:
    """Test structural and scheduling failures."""

    def test_unsupported_response_version(self, cluster_config):
        """Test that an unknown record layout aborts the pump."""
        bucket = Bucket(AsyncKVClient(cluster_config=cluster_config, response_version=1))
        bucket.connect()
        recorder = Recorder()
        bucket.get("k1", recorder)

        with pytest.raises(UnsupportedResponseVersion, match="for get: 1"):
            bucket.wait()
        assert recorder.count == 0

    def test_schedule_before_connect(self, client, recorder):
        """Test that a refused operation raises and leaves no cookie behind."""
        bucket = Bucket(client)
        with pytest.raises(OperationScheduleError) as exc_info:
            bucket.get("k1", recorder)

        assert exc_info.value.code == ErrorCode.EINVAL
        assert bucket.outstanding == 0

    def test_empty_multi_get(self, bucket, recorder):
        """Test that a get with no keys is refused."""
        with pytest.raises(OperationScheduleError):
            bucket.get([], recorder)
        assert bucket.outstanding == 0

    def test_node_outage_reaches_callbacks(self, bucket, cluster_config, recorder):
        """Test that outages arrive as error codes and as an instance error."""
        errors = Recorder()
        bucket.on("error", errors)
        key = find_key_on_node(cluster_config, 3)
        bucket.client.set_node_available(3, False)

        bucket.get(key, recorder)
        bucket.wait()

        assert recorder.calls == [(None, ErrorCode.NETWORK_ERROR, key, None, None, None)]
        assert errors.calls == [(ErrorCode.NETWORK_ERROR, "node 3 is unreachable")]

    def test_connect_events(self, client):
        """Test that connect handlers see the configuration status."""
        bucket = Bucket(client)
        connects = Recorder()
        bucket.on("connect", connects)

        bucket.connect()
        bucket.wait()

        assert connects.calls == [(ConfigurationStatus.NEW,)]
        assert bucket.configuration == ConfigurationStatus.NEW

    def test_unknown_event(self, bucket):
        """Test that only connect and error events exist."""
        with pytest.raises(ValueError):
            bucket.on("disconnect", print)

    @pytest.mark.parametrize("key, value", [(3, "v"), ("counter", 5), ("k", None), ([b"a", 7], "v")])
    def test_rejects_non_bytes_input(self, bucket, recorder, key, value):
        """Test that keys and values must be text or bytes-like."""
        with pytest.raises(TypeError):
            bucket.set(key, value, recorder)

        bucket.wait()
        assert recorder.count == 0
        assert bucket.outstanding == 0

    @pytest.mark.parametrize("keys", [3, [b"a", 7], [None]])
    def test_rejects_non_bytes_keys_on_read(self, bucket, recorder, keys):
        """Test that multi-key reads reject keys that are not text or bytes-like."""
        with pytest.raises(TypeError):
            bucket.get(keys, recorder)
        with pytest.raises(TypeError):
            bucket.touch(keys, recorder)
        assert bucket.outstanding == 0

    def test_accepts_bytes_like_input(self, bucket, recorder):
        """Test bytearray and memoryview keys and values."""
        stored_cas(bucket, bytearray(b"buf"), memoryview(b"payload"))

        bucket.get(memoryview(b"buf"), recorder)
        bucket.wait()

        assert recorder.calls[0][2] == b"buf"
        assert recorder.calls[0][5] == b"payload"


@pytest.mark.asyncio
@pytest.mark.integration
class TestAsync:
    """Test asyncio-driven completion."""

    async def test_wait_async(self, bucket, recorder):
        """Test that completions are delivered by the running loop."""
        bucket.set("k1", "v1", recorder)
        bucket.get("k1", recorder)

        await bucket.wait_async()

        assert [call[1] for call in recorder.calls] == [False, False]
        assert bucket.outstanding == 0

    async def test_wait_async_surfaces_version_error(self, cluster_config):
        """Test that version mismatches propagate out of wait_async()."""
        bucket = Bucket(AsyncKVClient(cluster_config=cluster_config, response_version=2))
        bucket.connect()
        bucket.touch("k", Recorder())

        with pytest.raises(UnsupportedResponseVersion):
            await bucket.wait_async()

    async def test_every_loop_pump_failure_reaches_drain(self, cluster_config):
        """Test that failures from separate loop-driven pumps are all re-raised, in order."""
        bucket = Bucket(AsyncKVClient(cluster_config=cluster_config, response_version=1))
        bucket.connect()
        bucket.client.attach()

        bucket.get("k1", Recorder())
        await asyncio.sleep(0)
        bucket.touch("k2", Recorder())
        await asyncio.sleep(0)

        assert bucket.client.pending == 0
        assert bucket.outstanding == 2

        with pytest.raises(UnsupportedResponseVersion, match="for get: 1"):
            await bucket.wait_async()
        with pytest.raises(UnsupportedResponseVersion, match="for touch: 1"):
            await bucket.wait_async()
        await bucket.wait_async()
