"""Tests for FlowRunner."""

import json
import logging
import re

import click
import pytest

from clickpath.errors import NotFound
from clickpath.flows import FlowRunner, RunnerConfig

from conftest import ScriptedChannel


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def make_runner(session, catalog, logs_dir):
    """Build a runner whose log lines, sleeps and acknowledgements are captured."""

    def _make(channel=None, acknowledge=None, **cfg):
        channel = channel if channel is not None else ScriptedChannel()
        captured = {"lines": [], "sleeps": [], "acks": []}
        runner = FlowRunner(
            session,
            channel,
            catalog,
            logs_dir,
            cfg=RunnerConfig(**{"clipboard_settle_s": 0.0, **cfg}),
            acknowledge=acknowledge or captured["acks"].append,
            log=captured["lines"].append,
            sleep=captured["sleeps"].append,
        )
        return runner, channel, captured

    return _make


class TestSequentialExecution:
    """Steps run in order and each one is logged."""

    def test_steps_map_to_commands(self, make_runner, session, write_flow):
        write_flow(
            "basic",
            [
                {"type": "click", "name": "search"},
                {"type": "key", "keys": "cmd+a"},
                {"type": "setClipboard", "text": "hello"},
                {"type": "paste"},
                {"type": "scroll", "amount": 3},
                {"type": "click", "name": "address", "doubleClick": True},
            ],
        )
        session.navigate("/chrome")
        runner, channel, _ = make_runner()

        result = runner.run("basic")

        assert result.success
        assert result.steps_completed == 6
        assert result.failed_step is None
        assert channel.actions() == ["click", "key", "setClipboard", "paste", "scroll", "click"]
        first, last = channel.commands("click")
        assert (first["x"], first["y"], first["doubleClick"]) == (100, 50, False)
        assert (last["x"], last["y"], last["doubleClick"]) == (300, 40, True)
        assert channel.commands("key")[0]["keys"] == "cmd+a"
        assert channel.commands("setClipboard")[0]["text"] == "hello"
        assert channel.commands("scroll")[0]["amount"] == 3

    def test_log_directory_layout(self, make_runner, write_flow, logs_dir):
        write_flow("layout", [{"type": "click", "name": "start"}, {"type": "paste"}])
        runner, channel, _ = make_runner()

        result = runner.run("layout")

        assert result.log_dir.parent == logs_dir
        assert re.fullmatch(r"layout_\d+", result.log_dir.name)
        assert (result.log_dir / "00001-click.json").exists()
        assert (result.log_dir / "00002-paste.json").exists()
        record = _read(result.log_dir / "00001-click.json")
        assert record["step"] == {"type": "click", "name": "start", "doubleClick": False}
        assert record["success"] is True
        assert record["resolvedFrom"] == "/"

    def test_screenshot_after_each_completed_step(self, make_runner, write_flow):
        write_flow("shots", [{"type": "paste"}, {"type": "paste"}])
        runner, channel, _ = make_runner()

        result = runner.run("shots")

        shots = [c["filename"] for c in channel.commands("screenshot")]
        assert shots == [
            str((result.log_dir / "00001-screenshot.png").resolve()),
            str((result.log_dir / "00002-screenshot.png").resolve()),
        ]
        assert channel.actions(screenshots=True) == ["paste", "screenshot", "paste", "screenshot"]

    def test_screenshots_disabled(self, make_runner, write_flow):
        write_flow("quiet", [{"type": "paste"}])
        runner, channel, _ = make_runner(screenshots=False)
        runner.run("quiet")
        assert channel.commands("screenshot") == []

    def test_failed_screenshot_is_not_fatal(self, make_runner, write_flow):
        write_flow("flaky", [{"type": "paste"}, {"type": "paste"}])
        channel = ScriptedChannel({"screenshot": {"success": False, "error": "no display"}})
        runner, _, _ = make_runner(channel)
        assert runner.run("flaky").success

    def test_copy_records_clipboard(self, make_runner, write_flow):
        write_flow("grab", [{"type": "copy"}])
        runner, _, _ = make_runner(ScriptedChannel({"copy": {"clipboard": "copied text "}}))

        result = runner.run("grab")

        assert _read(result.log_dir / "00001-copy.json")["clipboard"] == "copied text "

    def test_set_clipboard_waits_to_settle(self, make_runner, write_flow):
        write_flow("clip", [{"type": "setClipboard", "text": "x"}])
        runner, _, captured = make_runner(clipboard_settle_s=0.3)
        runner.run("clip")
        assert captured["sleeps"] == [0.3]

    def test_pause_modes(self, make_runner, write_flow):
        write_flow("waits", [{"type": "pause", "ms": 250}, {"type": "pause", "message": "Log in now"}])
        runner, channel, captured = make_runner()

        assert runner.run("waits").success
        assert captured["sleeps"] == [0.25]
        assert captured["acks"] == ["Log in now"]
        assert channel.actions() == []

    def test_progress_lines(self, make_runner, write_flow):
        write_flow("talk", [{"type": "paste"}], description="says things")
        runner, _, captured = make_runner()
        runner.run("talk")
        assert captured["lines"] == [
            "Executing flow: talk",
            "Step 1: paste",
            "Flow 'talk' completed successfully",
        ]

    def test_missing_flow_raises(self, make_runner):
        runner, _, _ = make_runner()
        with pytest.raises(NotFound):
            runner.run("ghost")

    def test_allowed_context_mismatch_warns(self, make_runner, session, write_flow, caplog):
        write_flow("ff", [{"type": "paste"}], allowedContext="/firefox")
        session.navigate("/chrome")
        runner, _, _ = make_runner()

        with caplog.at_level(logging.WARNING, logger="clickpath.flows.runner"):
            result = runner.run("ff")

        assert result.success
        assert "expects context /firefox" in caplog.text


class TestContextHandling:
    """Navigation inside a flow and context restoration."""

    def test_click_target_context_switches(self, make_runner, session, write_flow):
        write_flow(
            "tabs",
            [
                {"type": "navigate", "path": "/chrome/tabs"},
                {"type": "click", "name": "new-tab"},
                {"type": "click", "name": "console"},
            ],
        )
        runner, channel, _ = make_runner()

        result = runner.run("tabs")

        assert result.success
        record = _read(result.log_dir / "00002-click.json")
        assert record["context"] == "/chrome/devtools"
        assert record["resolvedFrom"] == "/chrome/tabs"
        assert _read(result.log_dir / "00003-click.json")["resolvedFrom"] == "/chrome/devtools"

    def test_context_restored_after_success(self, make_runner, session, write_flow):
        write_flow("wander", [{"type": "navigate", "path": "/firefox"}])
        session.navigate("/chrome/tabs")
        runner, _, _ = make_runner()

        runner.run("wander")

        assert session.current == ("chrome", "tabs")

    def test_context_restored_after_failure(self, make_runner, session, write_flow):
        write_flow("broken", [{"type": "navigate", "path": "/firefox"}, {"type": "click", "name": "ghost"}])
        runner, _, _ = make_runner()

        result = runner.run("broken")

        assert not result.success
        assert session.current == ()

    def test_missing_navigate_target_is_not_fatal(self, make_runner, session, write_flow):
        write_flow("lost", [{"type": "navigate", "path": "/nowhere"}, {"type": "click", "name": "start"}])
        session.navigate("/chrome")
        runner, _, captured = make_runner()

        result = runner.run("lost")

        assert result.success
        assert _read(result.log_dir / "00001-navigate.json")["navigated"] is False
        assert any("not found" in line for line in captured["lines"])


class TestFailures:
    """Fatal step failures stop the flow at that step."""

    @pytest.mark.parametrize("interrupt", [EOFError, KeyboardInterrupt, click.Abort])
    def test_unacknowledged_pause_aborts(self, make_runner, session, write_flow, interrupt):
        write_flow(
            "halt",
            [{"type": "navigate", "path": "/firefox"}, {"type": "pause", "message": "Log in now"}, {"type": "paste"}],
        )
        session.navigate("/chrome")

        def acknowledge(_message):
            raise interrupt()

        runner, channel, _ = make_runner(acknowledge=acknowledge)

        result = runner.run("halt")

        assert not result.success
        assert result.failed_step == 2
        assert result.error == "Pause not acknowledged: Log in now"
        assert _read(result.log_dir / "00002-pause.json")["success"] is False
        assert not (result.log_dir / "00003-paste.json").exists()
        assert "paste" not in channel.actions()
        assert session.current == ("chrome",)

    def test_executor_error_aborts_at_step(self, make_runner, write_flow):
        write_flow(
            "abort",
            [{"type": "click", "name": "start"}, {"type": "key", "keys": "cmd+q"}, {"type": "paste"}],
        )
        runner, channel, captured = make_runner(ScriptedChannel({"key": {"success": False, "error": "Unknown key token: q!"}}))

        result = runner.run("abort")

        assert not result.success
        assert result.failed_step == 2
        assert result.steps_completed == 1
        assert result.error == "Unknown key token: q!"
        assert channel.actions() == ["click", "key"]
        assert len(channel.commands("screenshot")) == 1
        failed = _read(result.log_dir / "00002-key.json")
        assert failed["success"] is False
        assert failed["error"] == "Unknown key token: q!"
        assert not (result.log_dir / "00003-paste.json").exists()
        assert "Step 2 failed: Unknown key token: q!" in captured["lines"]

    def test_unknown_click_is_fatal(self, make_runner, write_flow):
        write_flow("nope", [{"type": "click", "name": "ghost"}])
        runner, channel, _ = make_runner()

        result = runner.run("nope")

        assert result.failed_step == 1
        assert "Click 'ghost' not found" in result.error
        assert channel.sent == []

    def test_timeout_is_fatal(self, make_runner, write_flow):
        write_flow("slow", [{"type": "paste"}, {"type": "copy"}])
        runner, _, _ = make_runner(ScriptedChannel({"paste": None}))

        result = runner.run("slow")

        assert result.failed_step == 1
        assert "No response to 'paste'" in result.error

    def test_checkpoint_mismatch_is_fatal(self, make_runner, session, write_flow):
        write_flow(
            "check",
            [
                {
                    "type": "checkpoint",
                    "checkpoint": {
                        "name": "title",
                        "actions": [{"type": "click", "name": "search"}, {"type": "copy", "expect": "Inbox"}],
                    },
                },
                {"type": "paste"},
            ],
        )
        session.navigate("/chrome")
        runner, channel, _ = make_runner(ScriptedChannel({"copy": {"clipboard": "inbox"}}))

        result = runner.run("check")

        assert result.failed_step == 1
        assert result.error == "Checkpoint 'title' failed: expected 'Inbox', got 'inbox'"
        assert channel.commands("paste") == []

    def test_checkpoint_pass_is_logged(self, make_runner, write_flow):
        write_flow("ok", [{"type": "checkpoint", "checkpoint": {"name": "t", "actions": [{"type": "copy", "expect": "A"}]}}])
        runner, _, _ = make_runner(ScriptedChannel({"copy": {"clipboard": "A"}}))

        result = runner.run("ok")

        record = _read(result.log_dir / "00001-checkpoint.json")
        assert record["checkpoint"] == "t"
        assert record["clipboard"] == ["A"]


class TestNestedFlows:
    """`flow` steps run another flow to completion before continuing."""

    def test_nested_flow_runs_inline(self, make_runner, session, write_flow):
        write_flow("child", [{"type": "navigate", "path": "/firefox"}, {"type": "click", "name": "bookmarks"}])
        write_flow(
            "parent",
            [
                {"type": "navigate", "path": "/chrome/tabs"},
                {"type": "flow", "flowName": "child"},
                {"type": "click", "name": "search"},
            ],
        )
        runner, channel, captured = make_runner()

        result = runner.run("parent")

        assert result.success
        assert result.steps_completed == 3
        # The child's navigation is undone, so "search" resolves from /chrome/tabs.
        last = channel.commands("click")[-1]
        assert (last["x"], last["y"]) == (100, 50)
        assert session.current == ()

        child_dir = result.log_dir / "00002-flow-child"
        assert (child_dir / "00001-navigate.json").exists()
        assert (child_dir / "00002-click.json").exists()
        assert _read(result.log_dir / "00002-flow.json")["flowLog"] == str(child_dir)
        assert "  Step 1: navigate" in captured["lines"]

    def test_nested_failure_fails_caller(self, make_runner, session, write_flow):
        write_flow("child", [{"type": "paste"}, {"type": "key", "keys": "bad"}])
        write_flow("parent", [{"type": "flow", "flowName": "child"}, {"type": "paste"}])
        session.navigate("/chrome")
        runner, channel, _ = make_runner(ScriptedChannel({"key": {"success": False, "error": "boom"}}))

        result = runner.run("parent")

        assert not result.success
        assert result.failed_step == 1
        assert result.steps_completed == 0
        assert result.error == "boom"
        assert channel.actions() == ["paste", "key"]
        assert session.current == ("chrome",)

        child_record = _read(result.log_dir / "00001-flow-child" / "00002-key.json")
        assert child_record["error"] == "boom"
        parent_record = _read(result.log_dir / "00001-flow.json")
        assert parent_record["success"] is False
        assert parent_record["error"] == "Step 2 (key) failed: flow 'child' failed: boom"

    def test_missing_nested_flow_is_fatal(self, make_runner, write_flow):
        write_flow("parent", [{"type": "flow", "flowName": "ghost"}])
        runner, _, _ = make_runner()

        result = runner.run("parent")

        assert not result.success
        assert "Flow 'ghost' not found" in result.error

    def test_recursion_is_bounded(self, make_runner, write_flow):
        write_flow("loop", [{"type": "paste"}, {"type": "flow", "flowName": "loop"}])
        runner, channel, _ = make_runner(max_flow_depth=3)

        result = runner.run("loop")

        assert not result.success
        assert "max depth 3" in result.error
        assert channel.actions() == ["paste", "paste", "paste"]
