"""
Tests for core Shell functionality.

Tests cover:
- Shell initialization
- Line execution and error reporting
- Exit code tracking
- Async messages
- The interactive loop with scripted input
- The demo entry point
"""

import builtins
import io

import pytest
from rich.console import Console

from cmd3.__main__ import main
from cmd3.commands import FunctionCommand
from cmd3.config import ShellConfig
from cmd3.control_flow import PipelineCancelled
from cmd3.shell import Shell
from cmd3.streams import ErrorStream, OutputStream

from conftest import noop


def make_console():
    return Console(file=io.StringIO(), force_terminal=False, color_system=None, width=200)


@pytest.fixture
def shell(registry):
    return Shell(registry, config=ShellConfig(buffer_size=1024), console=make_console())


def console_text(shell):
    return shell.console.file.getvalue()


def scripted_input(monkeypatch, lines):
    """Feed the REPL from a list; exceptions in the list are raised"""
    feed = iter(lines)

    def fake_input(prompt=''):
        try:
            item = next(feed)
        except StopIteration:
            raise EOFError
        if isinstance(item, BaseException):
            raise item
        return item

    monkeypatch.setattr(builtins, 'input', fake_input)


class TestShellInitialization:
    """Test Shell class initialization."""

    def test_shell_creates_with_defaults(self):
        shell = Shell(console=make_console())
        assert len(shell.registry) == 0
        assert shell.config.prompt == '> '
        assert shell.last_exit_code == 0
        assert not shell.running

    def test_shell_initializes_with_custom_env(self, registry):
        shell = Shell(registry, env={'CUSTOM_VAR': 'value'}, console=make_console())
        assert shell.context.env == {'CUSTOM_VAR': 'value'}
        assert shell.dispatcher.context is shell.context

    def test_add_command_chains(self):
        shell = Shell(console=make_console())
        result = shell.add_command(FunctionCommand('a', noop)).add_command(FunctionCommand('b', noop))
        assert result is shell
        assert shell.registry.list() == ['a', 'b']

    def test_complete(self, shell):
        assert shell.complete("ec").candidates == ('echo',)


class TestCommandExecution:
    """Test command execution."""

    def test_execute_returns_exit_code(self, shell):
        stdout = OutputStream.to_buffer()
        assert shell.execute("echo hi | upper", stdout=stdout) == 0
        assert stdout.get_value() == b"HI\n"
        assert shell.last_exit_code == 0

    def test_same_stdout_across_lines(self, shell):
        stdout = OutputStream.to_buffer()
        assert shell.execute("echo one", stdout=stdout) == 0
        assert shell.execute("echo two | upper", stdout=stdout) == 0
        assert stdout.get_value() == b"one\nTWO\n"

    def test_marker_in_arguments_is_kept(self, shell):
        stdout = OutputStream.to_buffer()
        assert shell.execute("echo !important", stdout=stdout) == 0
        assert stdout.get_value() == b"!important\n"

    def test_unknown_command_reported(self, shell):
        assert shell.execute("badcmd | upper") == 127
        assert "badcmd: command not found" in console_text(shell)
        assert shell.last_exit_code == 127

    def test_syntax_error_reported(self, shell):
        assert shell.execute("echo 'open") == 2
        assert "Unterminated" in console_text(shell)

    def test_empty_stage_reported(self, shell):
        assert shell.execute("echo ||") == 2
        assert "empty pipeline stage" in console_text(shell)

    def test_stage_failure_reported(self, shell):
        code = shell.execute("cat /nonexistent/cmd3-file", stdout=OutputStream.to_buffer(),
                             stderr=ErrorStream.to_buffer())
        assert code == 1
        assert "No such file or directory" in console_text(shell)

    def test_markup_in_errors_is_escaped(self, shell):
        shell.execute("[bold]x")
        assert "[bold]x: command not found" in console_text(shell)

    def test_blank_line_keeps_last_exit_code(self, shell):
        shell.execute("badcmd")
        assert shell.execute("   ") == 127

    def test_run_raises(self, shell):
        with pytest.raises(Exception) as exc_info:
            shell.run("badcmd")
        assert exc_info.value.exit_code == 127

    def test_report_cancelled(self, shell):
        shell.report_error(PipelineCancelled())
        assert "^C" in console_text(shell)


class TestAsyncMessages:

    def test_messages_printed_once(self, shell):
        shell.execute("buzz --quiet -n 2 wake", stdout=OutputStream.to_buffer())
        shell.print_async_messages()
        shell.print_async_messages()
        assert console_text(shell).count("wake") == 2


class TestRepl:
    """Test the interactive loop with scripted input"""

    def test_eof_exits(self, shell, monkeypatch):
        monkeypatch.setattr(shell, '_setup_readline', lambda: False)
        scripted_input(monkeypatch, [])
        assert shell.repl() == 0
        assert "cmd3" in console_text(shell)
        assert not shell.running

    def test_runs_lines_and_prints_messages(self, shell, monkeypatch):
        monkeypatch.setattr(shell, '_setup_readline', lambda: False)
        scripted_input(monkeypatch, ["buzz --quiet ping", "", "badcmd"])
        assert shell.repl() == 127
        text = console_text(shell)
        assert "ping" in text
        assert "badcmd: command not found" in text

    def test_ctrl_c_at_prompt_discards_line(self, shell, monkeypatch):
        monkeypatch.setattr(shell, '_setup_readline', lambda: False)
        scripted_input(monkeypatch, [KeyboardInterrupt(), "buzz --quiet after"])
        assert shell.repl() == 0
        text = console_text(shell)
        assert "^C" in text
        assert "after" in text

    def test_stop(self, registry, monkeypatch):
        shell = Shell(registry, console=make_console())

        def stop_now(process):
            shell.stop()

        registry.register('quit', FunctionCommand('quit', stop_now))
        monkeypatch.setattr(shell, '_setup_readline', lambda: False)
        scripted_input(monkeypatch, ["quit", "buzz --quiet never"])
        shell.repl()
        assert "never" not in console_text(shell)


class TestMain:
    """Test the demo entry point"""

    def test_single_command(self, capfd):
        assert main(['-c', 'echo hi | upper']) == 0
        assert "HI" in capfd.readouterr().out

    def test_single_command_failure(self, capfd):
        assert main(['-c', 'badcmd']) == 127

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(['--version'])
        assert exc_info.value.code == 0
        assert 'cmd3' in capsys.readouterr().out

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv('CMD3_BUFFER_SIZE', 'lots')
        with pytest.raises(SystemExit) as exc_info:
            main(['-c', 'echo hi'])
        assert exc_info.value.code == 2
