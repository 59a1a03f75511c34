"""Linear run pipeline: discover, assemble, persist, validate, upload, avoid list."""

from __future__ import annotations

import time
from dataclasses import dataclass

from clawbridge.archive import ArchivedRun, RunArchiver, update_avoid_list
from clawbridge.brief.models import (
    ConnectionBrief,
    assemble_brief,
    new_run_id,
    profile_hash,
    sample_brief,
)
from clawbridge.brief.validator import ValidationReport, validate
from clawbridge.config import Settings
from clawbridge.context import RunContext
from clawbridge.discovery.models import DEFAULT_TOOL_CHAIN, AgentTool, DiscoveryMode
from clawbridge.discovery.orchestrator import DiscoveryOrchestrator
from clawbridge.discovery.prompts import build_discovery_job
from clawbridge.discovery.supervisor import ProcessSupervisor
from clawbridge.errors import UploadError
from clawbridge.vault import UploadReceipt, VaultCredentials, VaultUploader


@dataclass(slots=True)
class RunOptions:
    mode: DiscoveryMode = DiscoveryMode.REAL
    upload: bool = True
    dry_run: bool = False
    timeout_seconds: int | None = None
    tool_chain: tuple[AgentTool, ...] = DEFAULT_TOOL_CHAIN


@dataclass(slots=True)
class PipelineRunResult:
    brief: ConnectionBrief
    archived: ArchivedRun
    validation: ValidationReport
    receipt: UploadReceipt | None
    avoid_list_added: int
    pruned: int
    completed: bool = True


class RunPipeline:
    """One run end to end; stages execute strictly in sequence."""

    def __init__(
        self,
        settings: Settings,
        *,
        orchestrator: DiscoveryOrchestrator | None = None,
        uploader: VaultUploader | None = None,
        archiver: RunArchiver | None = None,
        ctx: RunContext | None = None,
    ) -> None:
        self._settings = settings
        self._orchestrator = orchestrator
        self._uploader = uploader
        self._archiver = archiver or RunArchiver(settings.output.dir)
        self._ctx = ctx

    def run(self, options: RunOptions) -> PipelineRunResult:
        settings = self._settings
        run_id = new_run_id()
        ctx = RunContext(run_id=run_id, logger=self._ctx.logger) if self._ctx else RunContext(run_id)
        log = ctx.for_stage("pipeline").log
        started = time.monotonic()
        log.info(
            "Starting run: workspace_id=%s mode=%s dry_run=%s",
            settings.workspace_id,
            options.mode.value,
            options.dry_run,
        )

        hashed_profile = profile_hash(settings.project_profile.to_dict())
        completed = True
        if options.dry_run:
            log.info("Dry run - generating sample output")
            brief = sample_brief(
                workspace_id=settings.workspace_id,
                run_id=run_id,
                project_profile_hash=hashed_profile,
            )
        else:
            job = build_discovery_job(settings, options.mode)
            result = self._discovery(options).discover(job, options.tool_chain, ctx=ctx)
            completed = result.metadata.completed
            brief = assemble_brief(
                result=result,
                workspace_id=settings.workspace_id,
                run_id=run_id,
                project_profile_hash=hashed_profile,
            )
        brief = brief.with_duration(time.monotonic() - started)

        archived = self._archiver.persist(brief, ctx=ctx)
        pruned = self._archiver.prune(settings.output.keep_runs, ctx=ctx)

        report = validate(brief, min_evidence=settings.constraints.min_evidence)
        if not report.valid:
            log.warning("Brief failed validation with %d issue(s)", len(report.errors))

        receipt: UploadReceipt | None = None
        if options.upload and settings.vault.enabled and not options.dry_run:
            receipt = self._upload(brief, ctx=ctx)
        else:
            log.info("Vault upload skipped")

        # Only reached once the upload succeeded or was skipped.
        avoid_added = 0
        if (
            not options.dry_run
            and options.mode is DiscoveryMode.REAL
            and settings.source_path is not None
        ):
            avoid_added = update_avoid_list(brief, settings.source_path, ctx=ctx)

        if not completed:
            log.warning("Agent timed out, brief holds partial results")

        return PipelineRunResult(
            brief=brief,
            archived=archived,
            validation=report,
            receipt=receipt,
            avoid_list_added=avoid_added,
            pruned=len(pruned),
            completed=completed,
        )

    def _discovery(self, options: RunOptions) -> DiscoveryOrchestrator:
        if self._orchestrator is not None:
            return self._orchestrator
        discovery = self._settings.discovery
        return DiscoveryOrchestrator(
            supervisor=ProcessSupervisor(
                grace_seconds=discovery.grace_seconds,
                max_output_bytes=discovery.max_output_bytes,
            ),
            timeout_seconds=options.timeout_seconds or discovery.timeout_seconds,
        )

    def _upload(self, brief: ConnectionBrief, *, ctx: RunContext) -> UploadReceipt:
        vault = self._settings.vault
        if not vault.workspace_key:
            raise UploadError(
                "Workspace API key required for vault upload. "
                "Set CLAWBRIDGE_WORKSPACE_KEY environment variable.",
            )
        credentials = VaultCredentials(
            workspace_id=self._settings.workspace_id,
            workspace_key=vault.workspace_key,
        )
        if self._uploader is not None:
            return self._uploader.upload(brief, credentials, ctx=ctx)
        with VaultUploader(
            base_url=vault.effective_url,
            timeout_seconds=vault.request_timeout_seconds,
            min_evidence=self._settings.constraints.min_evidence,
        ) as uploader:
            return uploader.upload(brief, credentials, ctx=ctx)
