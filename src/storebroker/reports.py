"""
Tabular views of submissions for display and export.

This module turns submission documents and monitor histories into pandas
DataFrames so they can be printed or written to CSV.
"""

from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from .models import PackageReference, StatusDetails, Submission, SubmissionTarget

PACKAGE_COLUMNS = ["fileName", "fileStatus", "version", "architecture", "id"]
STATUS_DETAIL_COLUMNS = ["kind", "code", "details", "date", "reportUrl"]


def packages_frame(submission: Submission, target: Optional[SubmissionTarget] = None) -> pd.DataFrame:
    """
    List the packages of a submission, one row per package.

    Args:
        submission: Submission to describe
        target: Selects flight packages for flight targets; application packages otherwise

    Returns:
        DataFrame with PACKAGE_COLUMNS
    """
    packages: List[PackageReference]
    if target is not None and target.packages_key == "flightPackages":
        packages = submission.flight_packages or []
    else:
        packages = submission.application_packages or submission.flight_packages or []

    rows = []
    for package in packages:
        payload = package.to_payload()
        rows.append({column: payload.get(column) for column in PACKAGE_COLUMNS})

    return pd.DataFrame(rows, columns=PACKAGE_COLUMNS)


def status_details_frame(details: Optional[StatusDetails]) -> pd.DataFrame:
    """
    Flatten errors, warnings and certification reports into one table.

    Returns:
        DataFrame with STATUS_DETAIL_COLUMNS, errors first
    """
    if details is None:
        return pd.DataFrame(columns=STATUS_DETAIL_COLUMNS)

    rows = []
    for kind, entries in (
        ("error", details.errors),
        ("warning", details.warnings),
        ("certificationReport", details.certification_reports),
    ):
        for entry in entries:
            rows.append(
                {
                    "kind": kind,
                    "code": entry.get("code"),
                    "details": entry.get("details"),
                    "date": entry.get("date"),
                    "reportUrl": entry.get("reportUrl"),
                }
            )

    return pd.DataFrame(rows, columns=STATUS_DETAIL_COLUMNS)


def history_frame(history) -> pd.DataFrame:
    """Status changes observed by the monitor, in order."""
    rows = [
        {
            "status": change.status.value,
            "observed_at": change.observed_at,
            "errors": len(change.details.errors) if change.details else 0,
            "warnings": len(change.details.warnings) if change.details else 0,
        }
        for change in history
    ]
    return pd.DataFrame(rows, columns=["status", "observed_at", "errors", "warnings"])


def export_status_details(details: Optional[StatusDetails], output_path: Union[str, Path]) -> Path:
    """
    Write a submission's status details to CSV.

    Returns:
        The path written
    """
    output_path = Path(output_path)
    status_details_frame(details).to_csv(output_path, index=False)
    return output_path
