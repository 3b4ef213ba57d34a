"""Tests for the templated command runner (real subprocesses)."""

from __future__ import annotations

import pytest

from adapters.sync_commands import SubprocessCommandRunner
from core.config import CommandSettings
from core.domain.errors import CommandExecutionFailure, ConfigError
from core.domain.models import CommandTemplateData


def _data(index: int = 0, count: int = 1) -> CommandTemplateData:
    return CommandTemplateData(
        cluster_name="testnet",
        command_index=index,
        commands_count=count,
        version_from="0.6.9",
        version_to="0.7.1",
        package_version_to="0.7.1-1",
    )


class TestRender:
    def test_renders_cmd_args_and_environment(self):
        runner = SubprocessCommandRunner(
            [
                CommandSettings(
                    name="install",
                    cmd="apt-get install -y",
                    args=["doublezero={{ PackageVersionTo }}"],
                    environment={"DZ_CLUSTER": "{{ ClusterName }}", "STEP": "{{ CommandIndex + 1 }}/{{ CommandsCount }}"},
                )
            ]
        )
        argv, env = runner._commands[0].render(_data())
        assert argv == ["apt-get", "install", "-y", "doublezero=0.7.1-1"]
        assert env == {"DZ_CLUSTER": "testnet", "STEP": "1/1"}

    def test_arg_with_spaces_is_not_split(self):
        runner = SubprocessCommandRunner(
            [CommandSettings(name="notify", cmd="echo", args=["from {{ VersionFrom }} to {{ VersionTo }}"])]
        )
        argv, _ = runner._commands[0].render(_data())
        assert argv == ["echo", "from 0.6.9 to 0.7.1"]

    def test_syntax_error_is_config_error(self):
        with pytest.raises(ConfigError, match="broken"):
            SubprocessCommandRunner([CommandSettings(name="broken", cmd="echo {{ VersionTo")])

    def test_undefined_variable_fails_on_render(self):
        runner = SubprocessCommandRunner([CommandSettings(name="typo", cmd="echo {{ VersionToo }}")])
        with pytest.raises(CommandExecutionFailure, match="failed to render template"):
            runner._commands[0].render(_data())

    def test_disabled_commands_are_skipped(self):
        runner = SubprocessCommandRunner(
            [
                CommandSettings(name="a", cmd="true"),
                CommandSettings(name="b", cmd="true", disabled=True),
                CommandSettings(name="c", cmd="true"),
            ]
        )
        assert runner.commands_count == 2
        assert runner.names == ["a", "c"]


class TestExecute:
    @pytest.mark.asyncio
    async def test_success_writes_through_environment(self, tmp_path):
        out = tmp_path / "out.txt"
        runner = SubprocessCommandRunner(
            [
                CommandSettings(
                    name="record",
                    cmd="sh -c",
                    args=['echo "$DZ_VERSION" > ' + str(out)],
                    environment={"DZ_VERSION": "{{ PackageVersionTo }}"},
                )
            ]
        )
        await runner.execute(0, _data())
        assert out.read_text().strip() == "0.7.1-1"

    @pytest.mark.asyncio
    async def test_failure_raises_with_exit_code(self):
        runner = SubprocessCommandRunner([CommandSettings(name="fail", cmd="sh -c", args=["exit 3"])])
        with pytest.raises(CommandExecutionFailure) as excinfo:
            await runner.execute(0, _data())
        assert excinfo.value.exit_code == 3
        assert excinfo.value.name == "fail"

    @pytest.mark.asyncio
    async def test_allow_failure_continues(self, caplog):
        runner = SubprocessCommandRunner([CommandSettings(name="soft", cmd="false", allow_failure=True)])
        with caplog.at_level("WARNING"):
            await runner.execute(0, _data())
        assert any("allow_failure" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        runner = SubprocessCommandRunner([CommandSettings(name="ghost", cmd="/nonexistent/dz-installer")])
        with pytest.raises(CommandExecutionFailure, match="failed to start"):
            await runner.execute(0, _data())

    @pytest.mark.asyncio
    async def test_stream_output_logs_lines(self, caplog):
        runner = SubprocessCommandRunner(
            [CommandSettings(name="talk", cmd="echo", args=["hello {{ ClusterName }}"], stream_output=True)]
        )
        with caplog.at_level("INFO"):
            await runner.execute(0, _data())
        assert any(r.getMessage() == "[talk] hello testnet" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_stream_output_handles_lines_longer_than_the_reader_limit(self, caplog):
        runner = SubprocessCommandRunner(
            [
                CommandSettings(
                    name="flood",
                    cmd="sh -c",
                    args=["head -c 200000 /dev/zero | tr '\\0' x; echo; echo done"],
                    stream_output=True,
                )
            ]
        )
        with caplog.at_level("INFO"):
            await runner.execute(0, _data())
        messages = [r.getMessage() for r in caplog.records]
        assert "[flood] " + "x" * 200000 in messages
        assert "[flood] done" in messages

    @pytest.mark.asyncio
    async def test_stream_output_long_line_failure_respects_allow_failure(self, caplog):
        runner = SubprocessCommandRunner(
            [
                CommandSettings(
                    name="flood",
                    cmd="sh -c",
                    args=["head -c 200000 /dev/zero | tr '\\0' x; exit 3"],
                    stream_output=True,
                    allow_failure=True,
                )
            ]
        )
        with caplog.at_level("INFO"):
            await runner.execute(0, _data())
        assert any("allow_failure=true, continuing" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_stream_output_long_line_failure_raises(self):
        runner = SubprocessCommandRunner(
            [
                CommandSettings(
                    name="flood",
                    cmd="sh -c",
                    args=["head -c 200000 /dev/zero | tr '\\0' x; exit 3"],
                    stream_output=True,
                )
            ]
        )
        with pytest.raises(CommandExecutionFailure) as excinfo:
            await runner.execute(0, _data())
        assert excinfo.value.exit_code == 3
