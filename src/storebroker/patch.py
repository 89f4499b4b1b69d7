"""
Local merge of caller-supplied submission data into a cloned submission.

Patching never touches the network and never mutates its inputs: it works on
deep copies of JSON documents and returns a new ``Submission``.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .exceptions import ValidationError
from .models import (
    FileStatus,
    ProductKind,
    Submission,
    SubmissionTarget,
    TargetPublishMode,
    parse_model,
)
from .utils import normalize_publish_date

logger = logging.getLogger(__name__)

PRICING_AND_AVAILABILITY_FIELDS = (
    "pricing",
    "visibility",
    "allowTargetFutureDeviceFamilies",
    "allowMicrosoftDecidePackageDistribution",
    "enterpriseLicensing",
)

APP_PROPERTY_FIELDS = (
    "applicationCategory",
    "hardwarePreferences",
    "hasExternalInAppProducts",
    "meetAccessibilityGuidelines",
    "canInstallOnRemovableMedia",
    "automaticBackupEnabled",
    "isGameDvrEnabled",
)

IAP_PROPERTY_FIELDS = ("contentType", "keywords", "lifetime", "tag")


@dataclass
class PatchOptions:
    """
    Which parts of a cloned submission to replace with the caller's data.

    ``add_packages`` and ``replace_packages`` cannot both be set. Publish mode
    and date overrides take precedence over values in the submission data.
    """

    add_packages: bool = False
    replace_packages: bool = False
    update_listings: bool = False
    update_trailers: bool = False
    update_pricing_and_availability: bool = False
    update_app_properties: bool = False
    update_gaming_options: bool = False
    update_publish_mode: bool = False
    update_publish_visibility: bool = False
    update_notes_for_certification: bool = False
    target_publish_mode: Optional[Union[TargetPublishMode, str]] = None
    target_publish_date: Optional[Union[datetime, str]] = None

    def __post_init__(self):
        if self.add_packages and self.replace_packages:
            raise ValidationError(
                "add_packages and replace_packages are mutually exclusive"
            )
        if self.target_publish_mode is not None and not isinstance(
            self.target_publish_mode, TargetPublishMode
        ):
            try:
                self.target_publish_mode = TargetPublishMode(self.target_publish_mode)
            except ValueError:
                raise ValidationError(
                    f"Invalid target publish mode: {self.target_publish_mode}. "
                    f"Must be one of: {[m.value for m in TargetPublishMode]}"
                )
        if self.target_publish_date is not None:
            self.target_publish_date = normalize_publish_date(self.target_publish_date)

    @property
    def modifies_anything(self) -> bool:
        return any(
            [
                self.add_packages,
                self.replace_packages,
                self.update_listings,
                self.update_trailers,
                self.update_pricing_and_availability,
                self.update_app_properties,
                self.update_gaming_options,
                self.update_publish_mode,
                self.update_publish_visibility,
                self.update_notes_for_certification,
                self.target_publish_mode is not None,
                self.target_publish_date is not None,
            ]
        )


def _flagged(entries: Iterable[Dict[str, Any]], status: FileStatus) -> List[Dict[str, Any]]:
    flagged = []
    for entry in entries:
        entry = copy.deepcopy(entry)
        entry["fileStatus"] = status.value
        flagged.append(entry)
    return flagged


def _copy_fields(patched: Dict[str, Any], data: Mapping[str, Any], names: Iterable[str]) -> None:
    for name in names:
        if name in data:
            patched[name] = copy.deepcopy(data[name])


def _patch_packages(
    patched: Dict[str, Any],
    data: Mapping[str, Any],
    options: PatchOptions,
    target: SubmissionTarget,
) -> None:
    key = target.packages_key
    if key is None:
        raise ValidationError(
            "In-app product submissions have no packages",
            operation="Patch-Submission",
            identifiers=target.identifiers(),
        )

    existing = copy.deepcopy(patched.get(key) or [])
    if options.replace_packages:
        # The service deletes flagged entries itself; nothing is dropped here.
        existing = _flagged(existing, FileStatus.PENDING_DELETE)

    # Packaging tools write applicationPackages even for flight data.
    incoming = data.get(key)
    if incoming is None:
        incoming = data.get("applicationPackages") or []
    patched[key] = existing + _flagged(incoming, FileStatus.PENDING_UPLOAD)


def _patch_listings(patched: Dict[str, Any], data: Mapping[str, Any]) -> None:
    old_listings = patched.get("listings") or {}
    new_listings = copy.deepcopy(data.get("listings") or {})

    # Languages missing from the new data are dropped, which removes them on the service.
    for language, listing in new_listings.items():
        old_base = (old_listings.get(language) or {}).get("baseListing") or {}
        base = listing.setdefault("baseListing", {})
        base["images"] = _flagged(
            old_base.get("images") or [], FileStatus.PENDING_DELETE
        ) + _flagged(base.get("images") or [], FileStatus.PENDING_UPLOAD)

    patched["listings"] = new_listings


def _check_publish_settings(
    mode: Optional[TargetPublishMode], date: Optional[datetime], ids: Dict[str, str]
) -> None:
    if mode is TargetPublishMode.SPECIFIC_DATE and date is None:
        raise ValidationError(
            "A target publish date is required when the publish mode is SpecificDate",
            operation="Patch-Submission",
            identifiers=ids,
        )
    if date is not None and mode is not TargetPublishMode.SPECIFIC_DATE:
        raise ValidationError(
            "A target publish date was given but the publish mode is "
            f"{mode.value if mode is not None else 'not set'}; "
            "set the publish mode to SpecificDate",
            operation="Patch-Submission",
            identifiers=ids,
        )


def _caller_publish_settings(
    data: Mapping[str, Any], options: PatchOptions, ids: Dict[str, str]
) -> Tuple[bool, Optional[TargetPublishMode], Optional[datetime]]:
    """
    Publish mode/date requested by the caller, from the data and the overrides.

    Returns:
        (touched, mode, date); mode is None when only a date was overridden
        and the data did not name a mode
    """
    mode: Optional[TargetPublishMode] = None
    date: Optional[datetime] = None
    touched = False

    if options.update_publish_mode:
        touched = True
        raw_mode = data.get("targetPublishMode")
        if raw_mode is not None:
            try:
                mode = TargetPublishMode(raw_mode)
            except ValueError:
                raise ValidationError(
                    f"Invalid targetPublishMode in submission data: {raw_mode}",
                    operation="Patch-Submission",
                    identifiers=ids,
                )
        raw_date = data.get("targetPublishDate")
        if mode is TargetPublishMode.SPECIFIC_DATE:
            if raw_date:
                date = normalize_publish_date(raw_date)
        elif raw_date:
            # Submissions fetched from the service carry a placeholder date
            logger.debug(
                f"_caller_publish_settings: Ignoring targetPublishDate {raw_date} "
                f"because targetPublishMode is {raw_mode}"
            )

    if options.target_publish_mode is not None:
        touched = True
        mode = options.target_publish_mode
        date = options.target_publish_date
        _check_publish_settings(mode, date, ids)
    elif options.target_publish_date is not None:
        touched = True
        date = options.target_publish_date

    return touched, mode, date


def validate_patch_inputs(
    new_data: Mapping[str, Any], options: PatchOptions, target: SubmissionTarget
) -> None:
    """
    Run every patch check that does not depend on the cloned submission.

    Lets callers reject bad input before anything is created remotely.

    Raises:
        ValidationError: On the first inconsistency found
    """
    if (options.add_packages or options.replace_packages) and target.packages_key is None:
        raise ValidationError(
            "In-app product submissions have no packages",
            operation="Patch-Submission",
            identifiers=target.identifiers(),
        )
    ids = target.identifiers()
    touched, mode, date = _caller_publish_settings(new_data, options, ids)
    if touched and (mode is not None or date is not None):
        _check_publish_settings(mode, date, ids)


def _patch_publish_mode(
    patched: Dict[str, Any],
    data: Mapping[str, Any],
    options: PatchOptions,
    target: SubmissionTarget,
) -> None:
    ids = target.identifiers()
    touched, mode, date = _caller_publish_settings(data, options, ids)
    if not touched:
        return

    if mode is None and date is None and patched.get("targetPublishMode") is not None:
        # Nothing requested; keep the clone's mode and, for SpecificDate, its date
        mode = TargetPublishMode(patched["targetPublishMode"])
        if mode is TargetPublishMode.SPECIFIC_DATE and patched.get("targetPublishDate"):
            date = normalize_publish_date(patched["targetPublishDate"])
    _check_publish_settings(mode, date, ids)

    if mode is not None:
        patched["targetPublishMode"] = mode.value
    patched["targetPublishDate"] = (
        date.strftime("%Y-%m-%dT%H:%M:%S.000Z") if date is not None else None
    )


def patch_submission(
    cloned: Submission,
    new_data: Mapping[str, Any],
    options: PatchOptions,
    target: SubmissionTarget,
) -> Submission:
    """
    Merge selected parts of ``new_data`` into a copy of ``cloned``.

    Args:
        cloned: The submission the service created by cloning
        new_data: Caller-supplied submission document (camelCase JSON)
        options: Which parts to merge
        target: Product the submission belongs to

    Returns:
        A new Submission; ``cloned`` and ``new_data`` are left untouched

    Raises:
        ValidationError: On inconsistent publish mode/date or package
            operations against an in-app product
    """
    patched = copy.deepcopy(cloned.to_payload())
    data = copy.deepcopy(dict(new_data))

    if not options.modifies_anything:
        logger.warning(
            f"patch_submission: No modification options were given for {target}; "
            "the new submission will be identical to the cloned one"
        )

    if options.add_packages or options.replace_packages:
        _patch_packages(patched, data, options, target)

    if options.update_listings:
        _patch_listings(patched, data)

    if options.update_trailers:
        patched["trailers"] = copy.deepcopy(data.get("trailers") or [])

    if options.update_pricing_and_availability:
        _copy_fields(patched, data, PRICING_AND_AVAILABILITY_FIELDS)

    if options.update_app_properties:
        if target.kind is ProductKind.IN_APP_PRODUCT:
            _copy_fields(patched, data, IAP_PROPERTY_FIELDS)
        else:
            _copy_fields(patched, data, APP_PROPERTY_FIELDS)

    if options.update_gaming_options:
        _copy_fields(patched, data, ("gamingOptions",))

    if options.update_publish_visibility:
        _copy_fields(patched, data, ("visibility",))

    _patch_publish_mode(patched, data, options, target)

    if options.update_notes_for_certification:
        patched["notesForCertification"] = data.get("notesForCertification")

    return parse_model(
        Submission,
        patched,
        operation="Patch-Submission",
        identifiers=target.identifiers(cloned.id),
    )
