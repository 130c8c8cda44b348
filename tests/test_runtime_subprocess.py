"""Tests for the child-interpreter guest runtime."""

import asyncio
import sys

import pytest
import pytest_asyncio

from icarebridge.encoding import encode
from icarebridge.facade import ICare
from icarebridge.normalize import ResultNormalizer
from icarebridge.runtime.guest_main import execute, tag
from icarebridge.runtime.subprocess_runtime import SubprocessRuntime, _read_line
from icarebridge.runtime.values import GuestError, GuestMap, GuestSequence
from icarebridge.utils.exceptions import GuestRuntimeError, RuntimeNotReadyError, ValidationError


@pytest_asyncio.fixture
async def runtime():
    rt = SubprocessRuntime(python=sys.executable)
    await rt.start()
    yield rt
    await rt.close()


def test_tag_distinguishes_maps_and_sequences():
    assert tag({"a": [1, (2, 3)]}) == {"$map": [["a", {"$seq": [1, {"$seq": [2, 3]}]}]]}
    assert tag({1: None}) == {"$map": [[1, None]]}
    assert tag(object()).startswith("<object object")


def test_execute_returns_trailing_expression():
    namespace = {}
    assert execute("x = 2\ny = 3\nx * y", namespace) == 6
    assert execute("z = x + 1", namespace) is None
    assert namespace["z"] == 3


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_expression_value_and_state_persist(runtime):
    assert runtime.is_ready
    assert await runtime.run("a = 40\na + 2") == 42
    assert await runtime.run("a") == 40
    assert await runtime.run("'text'") == "text"
    assert await runtime.run("b = 1") is None


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_composite_values_are_tagged(runtime):
    value = await runtime.run("{'model': {'x': 0.5}, 'ages': [50, 60], 1: (True, None)}")
    assert isinstance(value, GuestMap)
    assert value.get("model") == GuestMap((("x", 0.5),))
    assert value.get("ages") == GuestSequence((50, 60))
    assert value.get(1) == GuestSequence((True, None))


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_guest_print_does_not_corrupt_replies(runtime):
    assert await runtime.run("print('noise')\nprint({'a': 1})\n7") == 7


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_guest_exception_becomes_error_marker(runtime):
    result = await runtime.run("open('missing.csv')")
    assert isinstance(result, GuestError)
    assert result.message.startswith("FileNotFoundError")
    assert "missing.csv" in result.message
    # The runtime keeps working after a guest exception
    assert await runtime.run("1 + 1") == 2


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_written_files_are_visible_to_guest(runtime):
    runtime.write_file("rates.csv", b"age,rate\n50,0.001\n")
    assert await runtime.run("open('rates.csv').read().splitlines()[1]") == "50,0.001"
    runtime.write_file("rates.csv", b"replaced")
    assert await runtime.run("open('rates.csv').read()") == "replaced"


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_write_file_rejects_paths(runtime):
    for name in ("", ".", "..", "sub/rates.csv", "..\\rates.csv"):
        with pytest.raises(ValidationError):
            runtime.write_file(name, b"x")


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_encoded_values_round_trip_through_guest(runtime):
    host = {"ages": [40, 50.5], "name": "it's \"quoted\"", "flag": False, "none": None}
    raw = await runtime.run(encode(host).render())
    assert ResultNormalizer().normalize(raw) == host


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_close_stops_guest_and_removes_workspace():
    rt = SubprocessRuntime(python=sys.executable)
    await rt.start()
    workspace = rt.workspace
    assert workspace is not None and workspace.is_dir()
    await rt.close()
    assert not rt.is_ready
    assert not workspace.exists()
    with pytest.raises(RuntimeNotReadyError):
        await rt.run("1")


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_given_workspace_is_kept(tmp_path):
    rt = SubprocessRuntime(python=sys.executable, workspace=tmp_path / "guest")
    await rt.start()
    rt.write_file("kept.txt", b"x")
    await rt.close()
    assert (tmp_path / "guest" / "kept.txt").read_bytes() == b"x"


@pytest.mark.asyncio
async def test_run_before_start_is_not_ready():
    rt = SubprocessRuntime(python=sys.executable)
    with pytest.raises(RuntimeNotReadyError):
        await rt.run("1")
    with pytest.raises(RuntimeNotReadyError):
        rt.write_file("a.csv", b"")


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_icare_end_to_end_with_stand_in_module(runtime, tmp_path):
    # A stand-in for the statistical package that reads its inputs from the guest filesystem
    await runtime.run(
        "import json, types\n"
        "def _risk(**kw):\n"
        "    rates = open(kw['model_disease_incidence_rates_path']).read().strip()\n"
        "    profile = [{'id': 1, 'age': kw['apply_age_start'], 'rates': rates}]\n"
        "    return {'model': {'family_history': 0.26}, 'profile': json.dumps(profile),\n"
        "            'method': 'iCARE - absolute risk', 'seed': kw['seed']}\n"
        "icare = types.SimpleNamespace(compute_absolute_risk=_risk)"
    )
    rates = tmp_path / "incidence_rates.csv"
    rates.write_text("age,rate\n")
    icare = ICare(runtime)
    result = await icare.compute_absolute_risk(apply_age_start=50, model_disease_incidence_rates_url=rates.as_uri())
    assert result == {
        "model": {"family_history": 0.26},
        "profile": [{"id": 1, "age": 50, "rates": "age,rate"}],
        "method": "iCARE - absolute risk",
        "seed": 1234,
    }
    await icare.transport.aclose()


@pytest.mark.asyncio
async def test_read_line_skips_over_long_lines_whole():
    reader = asyncio.StreamReader(limit=8)
    reader.feed_data(b"short\n" + b"x" * 50 + b"\nnext\ntail")
    reader.feed_eof()
    assert await _read_line(reader) == b"short\n"
    assert await _read_line(reader) is None
    assert await _read_line(reader) == b"next\n"
    assert await _read_line(reader) == b"tail"
    assert await _read_line(reader) == b""


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_cancelled_call_does_not_leak_its_reply(runtime):
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(runtime.run("import time\ntime.sleep(0.5)\n'slow result'"), timeout=0.1)
    assert await runtime.run("'fast result'") == "fast result"
    assert await runtime.run("'after'") == "after"


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_over_long_reply_fails_only_its_own_call():
    rt = SubprocessRuntime(python=sys.executable, max_message_bytes=1024)
    await rt.start()
    try:
        with pytest.raises(GuestRuntimeError, match="exceeded 1024 bytes"):
            await rt.run("'y' * 5000")
        assert await rt.run("3") == 3
    finally:
        await rt.close()


@pytest.mark.guest_process
@pytest.mark.asyncio
async def test_over_long_guest_output_line_is_discarded():
    rt = SubprocessRuntime(python=sys.executable, max_message_bytes=1024)
    await rt.start()
    try:
        assert await rt.run("import sys\nsys.stderr.write('x' * 5000 + '\\n')\nprint('after')\n1") == 1
        assert await rt.run("2") == 2
    finally:
        await rt.close()
