"""Map raw fetch failure text to a title, message and hints for display."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ErrorDetails:
    title: str
    message: str
    hints: List[str] = field(default_factory=list)


_NETWORK_MARKERS = (
    'Failed to fetch',
    'NetworkError',
    'ConnectionError',
    'Connection aborted',
    'Max retries exceeded',
    'Name or service not known',
    'timed out',
)


def describe_error(error) -> ErrorDetails:
    """Classify an exception or failure message by substring.

    Order matters: network faults are checked first, then HTTP statuses,
    then browser security and format problems.
    """
    message = str(error) if error is not None else ''
    if isinstance(error, BaseException) and not message:
        message = type(error).__name__

    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorDetails(
            'Network Error',
            message,
            [
                'Check your internet connection',
                'Try disabling VPN or proxy if enabled',
                'Firewall might be blocking the connection',
            ],
        )

    if 'HTTP 404' in message:
        return ErrorDetails(
            'Sheet Not Found',
            'Google Sheet not found or not published',
            [
                'Verify the sheet URL in the config file',
                'Ensure the sheet is published to web',
                'Check: File -> Share -> Publish to web -> CSV',
            ],
        )

    if 'HTTP 403' in message:
        return ErrorDetails(
            'Access Denied',
            'Cannot access the Google Sheet',
            [
                'Sheet must be published to web (not just shared)',
                'Go to File -> Share -> Publish to web',
                'Select "Comma-separated values (.csv)" format',
            ],
        )

    if 'HTTP 500' in message or 'HTTP 503' in message:
        return ErrorDetails(
            'Server Error',
            'Google Sheets is temporarily unavailable',
            [
                'This is a temporary issue with Google',
                'Try again in a few minutes',
                'Check Google Workspace Status',
            ],
        )

    if 'CORS' in message or 'cross-origin' in message:
        return ErrorDetails(
            'Security Error',
            'Cannot load data due to browser security',
            [
                'Ensure the sheet is published as CSV',
                'URL must end with "?output=csv"',
                'Try a different client if the issue persists',
            ],
        )

    if 'parse' in message or 'JSON' in message:
        return ErrorDetails(
            'Data Format Error',
            'Sheet data is not in valid CSV format',
            [
                'Check for special characters in questions',
                'Ensure CSV format is correct',
                'Try re-publishing the sheet',
            ],
        )

    return ErrorDetails(
        'Connection Error',
        message,
        [
            'Check your internet connection',
            'Verify the sheet URL in the config file',
            'Contact support if issue persists',
        ],
    )


__all__ = ["ErrorDetails", "describe_error"]
