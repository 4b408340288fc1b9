"""MQTT topic helpers.

We keep topic construction in one place so all surfaces agree on naming.

Topic layout under a per-shop namespace (default: `barbershop/main`):

Request/response:
- `<ns>/queue/requests`
    Commands from the kiosk and the staff console (check_in, accept, ...).
- `<ns>/queue/responses/<client_id>`
    Each surface listens for its own replies here.

Change events (fire-and-forget, at-least-once):
- `<ns>/events/entries`
    Published after every successful queue mutation.
- `<ns>/events/config`
    Published after roster or visible-count changes.

Viewers subscribe to `<ns>/events/+`, then re-fetch the snapshot with a
`get_snapshot` request and re-run the segmentation.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "barbershop/main"


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/responses/{client_id}"


def entries_events(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/events/entries"


def config_events(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/events/config"


def all_events(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Wildcard subscription covering both event streams."""
    return f"{namespace}/events/+"
