"""User-facing message catalog

Every localized string returned to callers (errors, geofence warnings) is
defined here. Unknown locales fall back to English.
"""

from .config import get_locale

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "task.not_found": "Task not found",
        "task.forbidden": "You do not have permission to manage this task",
        "task.invalid_transition": "Cannot change task status from {from_status} to {to_status}",
        "task.conflict": "The task was changed by someone else, please reload",
        "event.not_assigned": "You are not assigned to this task",
        "event.invalid_state": "The task is not in a valid state for this action",
        "event.precondition_failed": "A required earlier event is missing",
        "event.attachments_required": "At least one attachment is required",
        "event.too_many_files": "At most {max_files} attachments are allowed",
        "event.location_required": "GPS coordinates are required",
        "event.conflict": "The task was changed by someone else, please reload",
        "event.invalid_input": "Invalid input: {fields}",
        "arrival.invalid_state": "The task is not ready for check-in",
        "departure.invalid_state": "The task has not started or is already completed",
        "departure.requires_arrival": "You must check in before checking out",
        "upload.failed": "Could not store the attachments, please try again",
        "upload.file_too_large": 'File "{filename}" is too large ({size_mb}MB). Maximum size: {max_mb}MB',
        "upload.total_too_large": "Attachments are too large in total. Maximum: {max_mb}MB",
        "upload.mime_not_allowed": 'File type "{mime_type}" is not supported. Allowed: {allowed}',
        "attachment.not_found": "Attachment not found",
        "attachment.forbidden": "You cannot delete this attachment",
        "geofence.out_of_range": "You are {distance}m away from the task location",
        "transaction.timeout": "The operation took too long, please try again",
    },
    "vi": {
        "task.not_found": "Không tìm thấy công việc",
        "task.forbidden": "Bạn không có quyền quản lý công việc này",
        "task.invalid_transition": "Không thể chuyển trạng thái từ {from_status} sang {to_status}",
        "task.conflict": "Công việc đã được cập nhật bởi người khác, vui lòng tải lại",
        "event.not_assigned": "Bạn không được phân công vào công việc này",
        "event.invalid_state": "Trạng thái công việc không hợp lệ cho thao tác này",
        "event.precondition_failed": "Thiếu sự kiện bắt buộc trước đó",
        "event.attachments_required": "Cần ít nhất một tệp đính kèm",
        "event.too_many_files": "Tối đa {max_files} tệp đính kèm",
        "event.location_required": "Cần có tọa độ GPS",
        "event.conflict": "Công việc đã được cập nhật bởi người khác, vui lòng tải lại",
        "event.invalid_input": "Dữ liệu không hợp lệ: {fields}",
        "arrival.invalid_state": "Công việc chưa sẵn sàng để check-in",
        "departure.invalid_state": "Công việc chưa bắt đầu hoặc đã hoàn thành",
        "departure.requires_arrival": "Bạn phải check-in trước khi check-out",
        "upload.failed": "Không thể lưu tệp đính kèm, vui lòng thử lại",
        "upload.file_too_large": 'Tệp "{filename}" quá lớn ({size_mb}MB). Kích thước tối đa: {max_mb}MB',
        "upload.total_too_large": "Tổng dung lượng tệp quá lớn. Tối đa: {max_mb}MB",
        "upload.mime_not_allowed": 'Loại tệp "{mime_type}" không được hỗ trợ. Chỉ chấp nhận: {allowed}',
        "attachment.not_found": "Không tìm thấy tệp đính kèm",
        "attachment.forbidden": "Bạn không thể xóa tệp đính kèm này",
        "geofence.out_of_range": "Bạn đang ở cách vị trí công việc {distance}m",
        "transaction.timeout": "Thao tác mất quá nhiều thời gian, vui lòng thử lại",
    },
}


def get_message(key: str, locale: str | None = None, **params: object) -> str:
    """Resolve a message key for a locale and format it

    Args:
        key: catalog key, e.g. "event.conflict"
        locale: locale code; None reads FIELDTRACK_LOCALE
        **params: format parameters

    Returns:
        The formatted message; the key itself if it is unknown
    """
    catalog = MESSAGES.get(locale or get_locale()) or MESSAGES[DEFAULT_LOCALE]
    template = catalog.get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)
    return template.format(**params) if params else template
