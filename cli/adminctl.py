from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from spelo_admin.client import AdminClient, TransportError
from spelo_admin.jobs import JobsService
from spelo_admin.logging_setup import setup_json_logging
from spelo_admin.poller import PollState
from spelo_admin.schemas import CanonicalJob, JobFilter, JobPage
from spelo_admin.settings import settings
from spelo_admin.shapes import MissingJobIdError
from spelo_admin.status_canon import CanonicalStatus, JobKind

DEFAULT_WAIT_TIMEOUT = float(os.getenv("ADMIN_WAIT_TIMEOUT", "0"))
EXIT_JOB_FAILED = 2


class CLIError(RuntimeError):
    pass


def _pretty_json(data: Any) -> str:
    try:
        return json.dumps(data, indent=2, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(data)


def _read_words(words: Iterable[str], file: Optional[str]) -> List[str]:
    collected = [w.strip() for w in words]
    if file:
        path = Path(file).expanduser()
        if not path.is_file():
            raise CLIError(f"Word list not found: {path}")
        collected.extend(line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    seen = set()
    unique = []
    for word in collected:
        if word and word not in seen:
            seen.add(word)
            unique.append(word)
    return unique


def _format_progress(job: Any) -> str:
    status = job.status.value if isinstance(job.status, CanonicalStatus) else str(job.status)
    label = getattr(job, "id", None)
    if label is None:
        label = getattr(job, "task_id", "?")
    parts = [f"[job {label}] {status}"]
    pct = job.progress()
    if pct is not None:
        parts.append(f"{pct:.0f}%")
    if job.total_items:
        parts.append(f"{job.completed_items or 0}/{job.total_items}")
    failed = getattr(job, "failed_items", None)
    if failed:
        parts.append(f"({failed} failed)")
    if job.current_step:
        parts.append(f"- {job.current_step}")
    return " ".join(parts)


def _format_job_row(job: CanonicalJob) -> str:
    pct = job.progress()
    return "  ".join([
        f"{job.id:>6}",
        f"{job.status.value:<17}",
        f"{(job.job_type or '-'):<18}",
        f"{pct:>5.0f}%" if pct is not None else "    -",
        job.updated_at.isoformat(timespec="seconds"),
    ])


def _print_page(page: JobPage) -> None:
    if not page.content:
        print("No jobs found.")
        return
    for job in page.content:
        print(_format_job_row(job))
    print(f"\nPage {page.page_number}/{page.total_pages} - {page.total_elements} job(s){'' if page.last else ' (more available)'}")


def _print_update(job: Any) -> None:
    print(_format_progress(job), flush=True)


def _print_poll_error(err: BaseException) -> None:
    print(f"(still in progress; status check failed: {err})", file=sys.stderr)


def _open_client(args: argparse.Namespace) -> AdminClient:
    return AdminClient(args.api_url, args.token, args.timeout)


async def _watch(args: argparse.Namespace, service: JobsService, job_id: Any, kind: JobKind) -> PollState:
    session = service.watch(
        job_id,
        kind,
        interval=args.interval,
        on_update=_print_update,
        on_error=_print_poll_error,
    )
    try:
        if args.wait_timeout > 0:
            return await asyncio.wait_for(session.wait(), args.wait_timeout)
        return await session.wait()
    except asyncio.TimeoutError:
        raise CLIError(f"Timed out waiting for job {job_id}.")
    finally:
        session.cancel()
        await session.wait()


def _exit_code(state: PollState) -> int:
    job = state.last_job
    if job is not None and job.status is CanonicalStatus.FAILED:
        return EXIT_JOB_FAILED
    return 0


def _run(coro) -> Any:
    try:
        return asyncio.run(coro)
    except TransportError as err:
        raise CLIError(str(err)) from err
    except MissingJobIdError as err:
        raise CLIError(str(err)) from err


def cmd_jobs(args: argparse.Namespace) -> None:
    job_filter = JobFilter(
        page=args.page,
        size=args.size,
        lesson_id=args.lesson_id,
        job_type=args.job_type,
        status=args.status,
        search=args.search,
    )

    async def run() -> JobPage:
        async with _open_client(args) as client:
            return await JobsService(client).list_jobs(job_filter)

    page = _run(run())
    if args.json:
        print(_pretty_json(page.model_dump(mode="json")))
    else:
        _print_page(page)


def cmd_job(args: argparse.Namespace) -> None:
    kind = JobKind.AUDIO if args.audio else JobKind.VOCAB

    async def run() -> CanonicalJob:
        async with _open_client(args) as client:
            return await JobsService(client).get_job(args.id, kind)

    job = _run(run())
    print(_pretty_json(job.model_dump(mode="json")))


def cmd_watch(args: argparse.Namespace) -> int:
    kind = JobKind(args.kind)
    job_id: Any = args.id
    if kind is not JobKind.UPLOAD:
        try:
            job_id = int(args.id)
        except ValueError:
            raise CLIError(f"Job id must be an integer for {kind.value} jobs: {args.id!r}")

    async def run() -> PollState:
        async with _open_client(args) as client:
            return await _watch(args, JobsService(client), job_id, kind)

    state = _run(run())
    return _exit_code(state)


def cmd_vocab_create(args: argparse.Namespace) -> int:
    words = _read_words(args.words, args.file)
    if not words:
        raise CLIError("No words given. Pass words as arguments or with --file.")

    async def run():
        async with _open_client(args) as client:
            service = JobsService(client)
            job_id = await service.submit_vocab_job(words)
            print(f"Job {job_id} submitted ({len(words)} word(s)).")
            if args.no_wait:
                return None
            print("Waiting for completion…", file=sys.stderr)
            return await _watch(args, service, job_id, JobKind.VOCAB)

    state = _run(run())
    if state is None:
        return 0
    job = state.last_job
    if job is not None:
        for item in job.items:
            if item.status == "FAILED":
                print(f"  failed: {item.word}" + (f" ({item.error_message})" if item.error_message else ""))
    return _exit_code(state)


def cmd_finalize(args: argparse.Namespace) -> int:
    async def run() -> CanonicalJob:
        async with _open_client(args) as client:
            return await JobsService(client).finalize_audio_job(args.id)

    job = _run(run())
    print(_pretty_json(job.model_dump(mode="json")))
    return EXIT_JOB_FAILED if job.status is CanonicalStatus.FAILED else 0


def _read_payload(file: str) -> Dict[str, Any]:
    path = Path(file).expanduser()
    if not path.is_file():
        raise CLIError(f"Payload file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as err:
        raise CLIError(f"Payload file is not valid JSON: {path} ({err})") from err
    if not isinstance(payload, dict):
        raise CLIError(f"Payload must be a JSON object: {path}")
    return payload


def cmd_submit(args: argparse.Namespace) -> None:
    payload = _read_payload(args.file)

    async def run() -> int:
        async with _open_client(args) as client:
            return await JobsService(client).submit(args.path, payload)

    print(_run(run()))


def _add_watch_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--interval", type=float, default=None, help="Seconds between status checks (default per job kind).")
    parser.add_argument("--wait-timeout", type=float, default=DEFAULT_WAIT_TIMEOUT, help="Max seconds to wait (0 = no limit).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="adminctl", description="Admin client for lesson, vocabulary and media jobs.")
    parser.add_argument("--api-url", default=settings.api_url, help=f"API base URL (default: {settings.api_url})")
    parser.add_argument("--token", default=settings.api_token, help="Bearer token (env SPELO_API_TOKEN).")
    parser.add_argument("--timeout", type=float, default=settings.http_timeout, help="HTTP timeout in seconds.")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level for JSON logs on stderr.")

    sub = parser.add_subparsers(dest="command", required=True)

    jobs = sub.add_parser("jobs", help="List jobs.")
    jobs.add_argument("--page", type=int)
    jobs.add_argument("--size", type=int)
    jobs.add_argument("--lesson-id", type=int)
    jobs.add_argument("--job-type", help="e.g. AUDIO_ALIGN, VOCAB_ENRICH, AUDIO_PROCESSING.")
    jobs.add_argument("--status")
    jobs.add_argument("--search")
    jobs.add_argument("--json", action="store_true", help="Print the canonical page as JSON.")
    jobs.set_defaults(func=cmd_jobs)

    job = sub.add_parser("job", help="Show one job.")
    job.add_argument("id", type=int, help="Job id.")
    job.add_argument("--audio", action="store_true", help="Read from the audio-processing endpoint.")
    job.set_defaults(func=cmd_job)

    finalize = sub.add_parser("finalize", help="Finalize a reviewed audio job.")
    finalize.add_argument("id", type=int, help="Audio job id.")
    finalize.set_defaults(func=cmd_finalize)

    watch = sub.add_parser("watch", help="Poll a job until it reaches a terminal status.")
    watch.add_argument("id", help="Job id (upload tasks use string ids).")
    watch.add_argument("--kind", choices=[k.value for k in JobKind], default=JobKind.VOCAB.value)
    _add_watch_flags(watch)
    watch.set_defaults(func=cmd_watch)

    vocab = sub.add_parser("vocab-create", help="Auto-create vocabulary for a list of words.")
    vocab.add_argument("words", nargs="*", help="Words to create.")
    vocab.add_argument("--file", help="File with one word per line.")
    vocab.add_argument("--no-wait", action="store_true", help="Submit and return without waiting for completion.")
    _add_watch_flags(vocab)
    vocab.set_defaults(func=cmd_vocab_create)

    submit = sub.add_parser("submit", help="POST a raw JSON payload and print the job id.")
    submit.add_argument("path", help="API path, e.g. /api/v1/vocab/auto-create.")
    submit.add_argument("file", help="Path to JSON file.")
    submit.set_defaults(func=cmd_submit)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_json_logging(args.log_level)
    try:
        return args.func(args) or 0
    except CLIError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
