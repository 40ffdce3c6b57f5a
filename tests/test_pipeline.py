"""Tests for the pipeline orchestrator."""

import pytest

from rustic_backup.config import ConfigInvalid
from rustic_backup.core.events import RecordingSink, StagePhase
from rustic_backup.core.pipeline import (
    STAGES,
    PipelineOrchestrator,
    RunOptions,
    StageState,
)
from rustic_backup.core.runner import Stage, StageRunner
from rustic_backup.mount import UnknownShare

S = StageState


def make_orchestrator(config, executor, options=None, mounted=False, sink=None):
    return PipelineOrchestrator(
        config,
        options or RunOptions(),
        runner=StageRunner(execute=executor),
        sink=sink,
        inspect=lambda mountpoint: mounted,
    )


class TestStageTable:
    """Tests for the fixed stage order."""

    def test_order(self):
        assert [spec.stage for spec in STAGES] == [
            Stage.MOUNT,
            Stage.INIT,
            Stage.CHECK,
            Stage.BACKUP,
            Stage.FORGET,
            Stage.COMPACT,
        ]


class TestFullRun:
    """Tests for a run where every command succeeds."""

    def test_all_stages_succeed(self, make_config, make_executor, mount_root):
        fake = make_executor()
        run = make_orchestrator(make_config(), fake).run()

        assert run.succeeded
        assert run.states() == {
            Stage.MOUNT: S.SUCCEEDED,
            Stage.INIT: S.SUCCEEDED,
            Stage.CHECK: S.SUCCEEDED,
            Stage.BACKUP: S.SUCCEEDED,
            Stage.FORGET: S.SUCCEEDED,
            Stage.COMPACT: S.SUCCEEDED,
        }
        assert fake.subcommands() == ["mount", "init", "check", "backup", "forget", "prune"]
        assert run.not_run() == []
        assert run.aborted_at is None

    def test_commands_use_engine(self, make_config, make_executor, mount_root):
        fake = make_executor()
        make_orchestrator(make_config(), fake).run()

        assert all(call[0] == "rustic" for call in fake.calls[1:])
        assert fake.calls[1] == ["rustic", "-r", "/tmp/repo", "--password", "pw", "init"]

    def test_skip_flag_scenario(self, make_config, make_executor):
        """--no-mount --no-check against a fresh repository."""
        fake = make_executor()
        options = RunOptions(no_mount=True, no_check=True)
        run = make_orchestrator(make_config(), fake, options).run()

        assert [(r.stage, r.state) for r in run.records] == [
            (Stage.MOUNT, S.SKIPPED),
            (Stage.INIT, S.SUCCEEDED),
            (Stage.CHECK, S.SKIPPED),
            (Stage.BACKUP, S.SUCCEEDED),
            (Stage.FORGET, S.SUCCEEDED),
            (Stage.COMPACT, S.SUCCEEDED),
        ]
        assert fake.subcommands() == ["init", "backup", "forget", "prune"]
        assert run.succeeded

    def test_no_prune_skips_forget_and_compact(self, make_config, make_executor):
        fake = make_executor()
        options = RunOptions(no_mount=True, no_prune=True)
        run = make_orchestrator(make_config(), fake, options).run()

        assert run.states()[Stage.FORGET] is S.SKIPPED
        assert run.states()[Stage.COMPACT] is S.SKIPPED
        assert fake.subcommands() == ["init", "check", "backup"]
        assert run.succeeded

    def test_no_share_skips_mount(self, make_config, make_executor):
        fake = make_executor()
        run = make_orchestrator(make_config(share=None), fake).run()

        mount = run.records[0]
        assert mount.state is S.SKIPPED
        assert mount.note == "no share configured"
        assert "mount" not in fake.subcommands()

    def test_already_mounted_skips_mount(self, make_config, make_executor):
        fake = make_executor()
        run = make_orchestrator(make_config(), fake, mounted=True).run()

        assert run.records[0].state is S.SKIPPED
        assert "already mounted" in run.records[0].note
        assert fake.subcommands()[0] == "init"
        assert run.succeeded

    def test_sudo_prefixes_every_command(self, make_config, make_executor, mount_root):
        fake = make_executor()
        make_orchestrator(make_config(), fake, RunOptions(sudo=True)).run()

        assert len(fake.calls) == 6
        assert all(call[0] == "doas" for call in fake.calls)


class TestInitAutoSkip:
    """Tests for the existing-repository classification."""

    @pytest.mark.parametrize(
        "stderr",
        [
            "Error: Config file already exists. Aborting.",
            "Fatal: create repository failed: config file already exists",
            "repository master key and config already initialized",
        ],
    )
    def test_existing_repository_is_success(self, make_config, make_executor, stderr):
        fake = make_executor({"init": (1, "", stderr)})
        run = make_orchestrator(make_config(), fake, RunOptions(no_mount=True)).run()

        init = run.records[1]
        assert init.state is S.SUCCEEDED
        assert init.note == "repository already initialized"
        assert run.succeeded
        assert fake.subcommands() == ["init", "check", "backup", "forget", "prune"]

    def test_other_init_error_fails(self, make_config, make_executor):
        fake = make_executor({"init": (1, "", "permission denied")})
        run = make_orchestrator(make_config(), fake, RunOptions(no_mount=True)).run()

        assert run.aborted_at is Stage.INIT
        assert fake.subcommands() == ["init"]

    def test_already_exists_only_applies_to_init(self, make_config, make_executor):
        fake = make_executor({"check": (1, "", "lock already exists")})
        run = make_orchestrator(make_config(), fake, RunOptions(no_mount=True)).run()

        assert run.aborted_at is Stage.CHECK


class TestFailFast:
    """Tests for halting at the first failed stage."""

    def test_check_failure(self, make_config, make_executor, mount_root):
        fake = make_executor({"check": (1, "checking packs", "error: pack abc missing")})
        run = make_orchestrator(make_config(), fake).run()

        assert [(r.stage, r.state) for r in run.records] == [
            (Stage.MOUNT, S.SUCCEEDED),
            (Stage.INIT, S.SUCCEEDED),
            (Stage.CHECK, S.FAILED),
        ]
        assert fake.subcommands() == ["mount", "init", "check"]
        assert run.not_run() == [Stage.BACKUP, Stage.FORGET, Stage.COMPACT]
        assert not run.succeeded

        failed = run.failed_record
        assert failed.result.stdout == "checking packs"
        assert failed.result.stderr == "error: pack abc missing"
        assert "exit status 1" in failed.note

    def test_check_failure_with_skipped_mount(self, make_config, make_executor):
        fake = make_executor({"check": (1, "", "bad")})
        run = make_orchestrator(make_config(), fake, mounted=True).run()

        assert run.states() == {
            Stage.MOUNT: S.SKIPPED,
            Stage.INIT: S.SUCCEEDED,
            Stage.CHECK: S.FAILED,
        }

    def test_mount_failure_stops_everything(self, make_config, make_executor, mount_root):
        fake = make_executor({"mount": (32, "", "access denied")})
        run = make_orchestrator(make_config(), fake).run()

        assert run.states() == {Stage.MOUNT: S.FAILED}
        assert fake.subcommands() == ["mount"]
        assert run.failed_record.result.stderr == "access denied"

    def test_backup_failure_never_prunes(self, make_config, make_executor):
        fake = make_executor({"backup": (3, "", "source unreadable")})
        run = make_orchestrator(make_config(), fake, RunOptions(no_mount=True)).run()

        assert run.aborted_at is Stage.BACKUP
        assert "forget" not in fake.subcommands()
        assert "prune" not in fake.subcommands()

    def test_forget_failure_skips_compact(self, make_config, make_executor):
        fake = make_executor({"forget": (1, "", "boom")})
        run = make_orchestrator(make_config(), fake, RunOptions(no_mount=True)).run()

        assert run.aborted_at is Stage.FORGET
        assert Stage.COMPACT in run.not_run()

    def test_mount_without_resolved_share_fails(self, make_config, make_executor):
        fake = make_executor()
        orchestrator = make_orchestrator(make_config(), fake)

        record = orchestrator._run_stage(STAGES[0], None)

        assert record.state is S.FAILED
        assert "no share was resolved" in record.note
        assert fake.calls == []

    def test_missing_engine_is_a_failure(self, make_config):
        def execute(command, cwd=None, env=None):
            raise FileNotFoundError(2, "No such file or directory", command[0])

        orchestrator = PipelineOrchestrator(
            make_config(share=None),
            runner=StageRunner(execute=execute),
        )
        run = orchestrator.run()

        assert run.aborted_at is Stage.INIT
        assert run.failed_record.result.returncode == 127


class TestPreflight:
    """Tests for errors raised before any subprocess."""

    def test_unknown_share(self, make_config, make_executor):
        fake = make_executor()
        orchestrator = make_orchestrator(make_config(share="nonexistent"), fake)

        with pytest.raises(UnknownShare):
            orchestrator.run()
        assert fake.calls == []

    def test_unknown_share_even_with_no_mount(self, make_config, make_executor):
        fake = make_executor()
        options = RunOptions(no_mount=True)
        orchestrator = make_orchestrator(make_config(share="nonexistent"), fake, options)

        with pytest.raises(UnknownShare):
            orchestrator.run()
        assert fake.calls == []

    @pytest.mark.parametrize("level", [0, 23])
    def test_compression_bounds(self, make_config, make_executor, level):
        fake = make_executor()
        orchestrator = make_orchestrator(make_config(compression=level), fake)

        with pytest.raises(ConfigInvalid):
            orchestrator.run()
        assert fake.calls == []

    def test_preflight_returns_share(self, make_config, make_executor):
        orchestrator = make_orchestrator(make_config(), make_executor())
        share = orchestrator.preflight()
        assert share.source == "nas.lan:/mnt/vol2/backups"

    def test_preflight_without_share(self, make_config, make_executor):
        orchestrator = make_orchestrator(make_config(share=None), make_executor())
        assert orchestrator.preflight() is None


class TestEvents:
    """Tests for stage lifecycle events."""

    def test_event_sequence(self, make_config, make_executor):
        sink = RecordingSink()
        fake = make_executor({"backup": (1, "", "nope")})
        options = RunOptions(no_mount=True, no_check=True)
        make_orchestrator(make_config(), fake, options, sink=sink).run()

        assert sink.phases() == [
            (Stage.MOUNT, StagePhase.SKIPPED),
            (Stage.INIT, StagePhase.STARTED),
            (Stage.INIT, StagePhase.SUCCEEDED),
            (Stage.CHECK, StagePhase.SKIPPED),
            (Stage.BACKUP, StagePhase.STARTED),
            (Stage.BACKUP, StagePhase.FAILED),
        ]

    def test_terminal_events_carry_records(self, make_config, make_executor):
        sink = RecordingSink()
        make_orchestrator(
            make_config(), make_executor(), RunOptions(no_mount=True), sink=sink
        ).run()

        for event in sink.events:
            if event.phase is StagePhase.STARTED:
                assert event.record is None
            else:
                assert event.record.stage is event.stage

    def test_broken_sink_does_not_stop_pipeline(self, make_config, make_executor):
        class BrokenSink:
            def emit(self, event):
                raise RuntimeError("terminal gone")

        fake = make_executor()
        run = make_orchestrator(
            make_config(), fake, RunOptions(no_mount=True), sink=BrokenSink()
        ).run()

        assert run.succeeded
        assert fake.subcommands() == ["init", "check", "backup", "forget", "prune"]
