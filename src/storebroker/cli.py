"""
storebroker command-line interface (Typer).

Thin plumbing over the orchestrator, the monitor and the submission
accessor. Configuration comes from ``STOREBROKER_*`` environment variables
or a ``.env`` file.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from .client import StoreBrokerAPI
from .config import StoreBrokerSettings
from .exceptions import StoreBrokerError
from .models import SubmissionTarget
from .monitor import SubmissionMonitor
from .orchestrator import SubmissionOrchestrator
from .patch import PatchOptions
from .reports import packages_frame, status_details_frame
from .submissions import SubmissionAccessor
from .utils import (
    load_submission_data,
    validate_flight_id,
    validate_product_id,
    validate_submission_id,
)

app = typer.Typer(
    name="storebroker",
    help="Create, update, commit and monitor Store submissions",
    add_completion=False,
)

console = Console()

T = TypeVar("T")


def run_with_progress(message: str, func: Callable[[], T], poll_seconds: float = 0.2) -> T:
    """
    Run ``func`` on a worker thread while showing a spinner.

    The caller blocks until the worker finishes; its result is returned and
    its exception re-raised unchanged.
    """
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(func)
        with console.status(message):
            while not future.done():
                time.sleep(poll_seconds)
        return future.result()


def _settings() -> StoreBrokerSettings:
    settings = StoreBrokerSettings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def _target(product_id: str, flight_id: Optional[str], iap: bool) -> SubmissionTarget:
    product_id = validate_product_id(product_id)
    if flight_id:
        return SubmissionTarget.flight(product_id, validate_flight_id(flight_id))
    if iap:
        return SubmissionTarget.in_app_product(product_id)
    return SubmissionTarget.application(product_id)


def _fail(error: StoreBrokerError) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(code=1)


@app.command("update-submission")
def update_submission(
    product_id: str = typer.Argument(..., help="Application or in-app product ID"),
    submission_data: Path = typer.Option(..., "--data", help="Submission data JSON file"),
    package_path: Optional[Path] = typer.Option(None, "--package", help="Package zip to upload"),
    flight_id: Optional[str] = typer.Option(None, "--flight-id", help="Update this flight"),
    iap: bool = typer.Option(False, "--iap", help="The product is an in-app product"),
    submission_id: Optional[str] = typer.Option(None, "--submission-id", help="Resume a pending submission"),
    add_packages: bool = typer.Option(False, "--add-packages"),
    replace_packages: bool = typer.Option(False, "--replace-packages"),
    update_listings: bool = typer.Option(False, "--update-listings"),
    update_trailers: bool = typer.Option(False, "--update-trailers"),
    update_pricing_and_availability: bool = typer.Option(False, "--update-pricing-and-availability"),
    update_app_properties: bool = typer.Option(False, "--update-properties"),
    update_gaming_options: bool = typer.Option(False, "--update-gaming-options"),
    update_publish_mode: bool = typer.Option(False, "--update-publish-mode"),
    update_publish_visibility: bool = typer.Option(False, "--update-publish-visibility"),
    update_notes_for_certification: bool = typer.Option(False, "--update-notes-for-certification"),
    target_publish_mode: Optional[str] = typer.Option(None, "--target-publish-mode"),
    target_publish_date: Optional[str] = typer.Option(None, "--target-publish-date"),
    auto_commit: bool = typer.Option(False, "--auto-commit"),
    force: bool = typer.Option(False, "--force", help="Delete an existing pending submission first"),
):
    """Clone the current submission, apply the selected changes and optionally commit."""
    settings = _settings()
    try:
        target = _target(product_id, flight_id, iap)
        options = PatchOptions(
            add_packages=add_packages,
            replace_packages=replace_packages,
            update_listings=update_listings,
            update_trailers=update_trailers,
            update_pricing_and_availability=update_pricing_and_availability,
            update_app_properties=update_app_properties,
            update_gaming_options=update_gaming_options,
            update_publish_mode=update_publish_mode,
            update_publish_visibility=update_publish_visibility,
            update_notes_for_certification=update_notes_for_certification,
            target_publish_mode=target_publish_mode,
            target_publish_date=target_publish_date,
        )
        data = load_submission_data(submission_data)
        orchestrator = SubmissionOrchestrator(StoreBrokerAPI(settings))
        result = run_with_progress(
            f"Updating submission for {target}...",
            lambda: orchestrator.update_submission(
                target,
                data,
                options,
                package_path=package_path,
                submission_id=validate_submission_id(submission_id) if submission_id else None,
                auto_commit=auto_commit,
                force=force,
            ),
        )
    except StoreBrokerError as e:
        _fail(e)

    console.print(f"Submission ID: [bold]{result.submission_id}[/bold]")
    console.print(f"Upload URL: {result.upload_url}")
    if not result.committed:
        console.print("Not committed. Run commit-submission once the package is uploaded.")


@app.command("commit-submission")
def commit_submission(
    product_id: str = typer.Argument(...),
    submission_id: str = typer.Argument(...),
    flight_id: Optional[str] = typer.Option(None, "--flight-id"),
    iap: bool = typer.Option(False, "--iap"),
):
    """Start certification of a pending submission."""
    settings = _settings()
    try:
        target = _target(product_id, flight_id, iap)
        status = SubmissionOrchestrator(StoreBrokerAPI(settings)).commit_submission(
            target, validate_submission_id(submission_id)
        )
    except StoreBrokerError as e:
        _fail(e)
    console.print(f"Submission {submission_id}: [bold]{status}[/bold]")


@app.command("monitor-submission")
def monitor_submission(
    product_id: str = typer.Argument(...),
    submission_id: str = typer.Argument(...),
    flight_id: Optional[str] = typer.Option(None, "--flight-id"),
    iap: bool = typer.Option(False, "--iap"),
    interval: Optional[int] = typer.Option(None, "--interval", min=1, help="Seconds between polls"),
    notify: List[str] = typer.Option([], "--notify", help="Email address to notify (repeatable)"),
):
    """Poll a submission until it is published or fails."""
    settings = _settings()
    try:
        target = _target(product_id, flight_id, iap)
        result = SubmissionMonitor(StoreBrokerAPI(settings)).monitor(
            target, validate_submission_id(submission_id), interval, notify
        )
    except StoreBrokerError as e:
        _fail(e)

    console.print(f"Final status: [bold]{result.final_status}[/bold]")
    if not result.succeeded:
        raise typer.Exit(code=2)


@app.command("submission-status")
def submission_status(
    product_id: str = typer.Argument(...),
    submission_id: str = typer.Argument(...),
    flight_id: Optional[str] = typer.Option(None, "--flight-id"),
    iap: bool = typer.Option(False, "--iap"),
):
    """Show a submission's status, packages and certification details."""
    settings = _settings()
    try:
        target = _target(product_id, flight_id, iap)
        submission = SubmissionAccessor(StoreBrokerAPI(settings)).get(
            target, validate_submission_id(submission_id)
        )
    except StoreBrokerError as e:
        _fail(e)

    console.print(f"Status: [bold]{submission.status}[/bold]")
    console.print(f"Publish mode: {submission.target_publish_mode}")
    if target.packages_key:
        console.print(packages_frame(submission, target).to_string(index=False))
    details = status_details_frame(submission.status_details)
    if not details.empty:
        console.print(details.to_string(index=False))


@app.command("remove-submission")
def remove_submission(
    product_id: str = typer.Argument(...),
    submission_id: str = typer.Argument(...),
    flight_id: Optional[str] = typer.Option(None, "--flight-id"),
    iap: bool = typer.Option(False, "--iap"),
):
    """Delete a pending submission."""
    settings = _settings()
    try:
        target = _target(product_id, flight_id, iap)
        SubmissionAccessor(StoreBrokerAPI(settings)).remove(
            target, validate_submission_id(submission_id)
        )
    except StoreBrokerError as e:
        _fail(e)
    console.print(f"Removed submission {submission_id}")


if __name__ == "__main__":
    app()
