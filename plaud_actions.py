"""
Plaud actions.

Callable operations on the Plaud API, grouped by resource:

- device:    list
- recording: getMany, getDownloadUrl, updateFilename, download

resource and operation apply to the whole batch, so the operation is resolved
once per execute() call; parameters are per input item. Each operation turns one
parameter set into zero or more ExecutionItems.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from models import BinaryData, ExecutionItem, ListFilters
from plaud_api import PlaudApi
from tools import logger


class GetManyParams(BaseModel):
    return_all: bool = False
    limit: int = Field(default=20, ge=1, le=100)
    options: ListFilters = Field(default_factory=ListFilters)


class RecordingParams(BaseModel):
    recording_id: str = Field(min_length=1)


class DownloadUrlParams(RecordingParams):
    format: Literal["original", "opus"] = "original"


class UpdateFilenameParams(RecordingParams):
    new_filename: str = Field(min_length=1)


class DownloadParams(DownloadUrlParams):
    binary_property_name: str = "data"


class Operation(object):
    """One resource x operation pair."""

    resource = None
    name = None
    params_model = BaseModel

    def __init__(self, plaud_api: PlaudApi):
        self._plaud_api = plaud_api

    def parse_params(self, params: Optional[Dict[str, Any]]):
        return self.params_model(**(params or {}))

    def run(self, params) -> List[Dict[str, Any]]:
        raise NotImplementedError


class ListDevices(Operation):
    resource = "device"
    name = "list"

    def run(self, params):
        unwrapped = self._plaud_api.list_devices()
        if not unwrapped.recognized:
            # Unknown shape: pass the whole response on as a single item
            raw = unwrapped.raw
            return [ExecutionItem(json=raw if isinstance(raw, dict) else {"response": raw})]
        return [ExecutionItem(json=device) for device in unwrapped.records]


class GetManyRecordings(Operation):
    resource = "recording"
    name = "getMany"
    params_model = GetManyParams

    RETURN_ALL_LIMIT = 1000

    def run(self, params: GetManyParams):
        target = self.RETURN_ALL_LIMIT if params.return_all else params.limit
        recordings = self._plaud_api.fetch_records(target, filters=params.options)
        logger.debug(f"Fetched {len(recordings)} recording(s)")
        return [ExecutionItem(json=recording) for recording in recordings]


class GetDownloadUrl(Operation):
    resource = "recording"
    name = "getDownloadUrl"
    params_model = DownloadUrlParams

    def run(self, params: DownloadUrlParams):
        opus = params.format == "opus"
        response = self._plaud_api.get_temp_urls(params.recording_id, opus=opus)
        return [ExecutionItem(json={
            "recordingId": params.recording_id,
            "format": params.format,
            "downloadUrl": response.get("temp_url_opus") if opus else response.get("temp_url"),
            "tempUrl": response.get("temp_url"),
            "tempUrlOpus": response.get("temp_url_opus"),
        })]


class UpdateFilename(Operation):
    resource = "recording"
    name = "updateFilename"
    params_model = UpdateFilenameParams

    def run(self, params: UpdateFilenameParams):
        response = self._plaud_api.update_filename(params.recording_id, params.new_filename)
        return [ExecutionItem(json={
            "recordingId": params.recording_id,
            "newFilename": params.new_filename,
            "success": response.get("status") in ("success", 200),
            "message": response.get("message"),
            "data": response.get("data"),
        })]


class DownloadRecording(Operation):
    resource = "recording"
    name = "download"
    params_model = DownloadParams

    def run(self, params: DownloadParams):
        opus = params.format == "opus"
        urls = self._plaud_api.get_temp_urls(params.recording_id, opus=opus)
        download_url = urls.get("temp_url_opus") if opus else urls.get("temp_url")

        if not download_url:
            raise ValueError(f"No download URL available for format: {params.format}")

        file_name = f"recording_{params.recording_id}.{'opus' if opus else 'wav'}"
        binary = BinaryData(
            data=self._plaud_api.download(download_url),
            file_name=file_name,
            mime_type="audio/opus" if opus else "audio/wav",
        )
        logger.debug(f"Downloaded {file_name} ({binary.file_size} bytes)")

        return [ExecutionItem(
            json={
                "recordingId": params.recording_id,
                "format": params.format,
                "fileName": file_name,
            },
            binary={params.binary_property_name: binary},
        )]


OPERATIONS = {
    (op.resource, op.name): op
    for op in (ListDevices, GetManyRecordings, GetDownloadUrl, UpdateFilename, DownloadRecording)
}


def resolve_operation(resource: str, operation: str):
    try:
        return OPERATIONS[(resource, operation)]
    except KeyError:
        raise ValueError(f"The operation '{operation}' is not supported for resource '{resource}'") from None


def execute(plaud_api: PlaudApi, resource: str, operation: str, items_params: List[Optional[dict]], continue_on_fail: bool = False) -> List[ExecutionItem]:
    """
    Run one operation for every input item.

    Args:
        plaud_api: API client
        resource: "device" or "recording"
        operation: Operation name within the resource
        items_params: Parameters of each input item
        continue_on_fail: Turn a failing item into an {"error": ...} item instead of aborting

    Returns:
        Output items, each paired with the index of the input item it came from
    """
    op = resolve_operation(resource, operation)(plaud_api)
    results = []

    for index, params in enumerate(items_params):
        try:
            outputs = op.run(op.parse_params(params))
        except Exception as e:
            if not continue_on_fail:
                raise
            logger.warning(f"{resource}.{operation} failed for item {index}: {e}")
            results.append(ExecutionItem(json={"error": str(e)}, paired_item=index))
            continue

        for output in outputs:
            output.paired_item = index
            results.append(output)

    return results
