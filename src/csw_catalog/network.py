import dataclasses
import enum
import typing

import httpx

from .errors import TransportError
from .utils import log


class HttpMethod(enum.Enum):
    GET = "GET"
    POST = "POST"


@dataclasses.dataclass()
class ParsedNetworkReply:
    http_status_code: typing.Optional[int]
    http_status_reason: typing.Optional[str]
    error: typing.Optional[str]
    response_body: bytes


@dataclasses.dataclass()
class RequestToPerform:
    url: str
    method: typing.Optional[HttpMethod] = HttpMethod.GET
    payload: typing.Optional[str] = None
    content_type: typing.Optional[str] = None
    # KVP operation name, only sent on GET requests since POST bodies carry it
    operation: typing.Optional[str] = None

    @property
    def params(self) -> typing.Optional[typing.Dict[str, str]]:
        if self.operation is not None and self.method == HttpMethod.GET:
            result = {"request": self.operation}
        else:
            result = None
        return result

    @property
    def headers(self) -> typing.Dict[str, str]:
        if self.content_type is not None:
            result = {"Content-Type": self.content_type}
        else:
            result = {}
        return result


def parse_network_reply(response: httpx.Response) -> ParsedNetworkReply:
    if response.is_error:
        error = f"HTTP {response.status_code}"
    else:
        error = None
    return ParsedNetworkReply(
        http_status_code=response.status_code,
        http_status_reason=response.reason_phrase,
        error=error,
        response_body=response.content,
    )


async def perform_request(
    http_client: httpx.AsyncClient, request_to_perform: RequestToPerform
) -> ParsedNetworkReply:
    """Perform a single HTTP request.

    Network failures and HTTP error statuses are both raised as
    ``TransportError``. No retries are attempted.

    """

    log(f"{request_to_perform.method.value} {request_to_perform.url}")
    try:
        response = await http_client.request(
            request_to_perform.method.value,
            request_to_perform.url,
            params=request_to_perform.params,
            content=(
                request_to_perform.payload.encode("utf-8")
                if request_to_perform.payload is not None
                else None
            ),
            headers=request_to_perform.headers,
        )
    except httpx.HTTPError as exc:
        raise TransportError(
            f"Could not reach {request_to_perform.url}: {exc}",
            url=request_to_perform.url,
        ) from exc
    parsed_reply = parse_network_reply(response)
    log(f"http_status_code: {parsed_reply.http_status_code}")
    if parsed_reply.error is not None:
        raise TransportError(
            f"Received an error from {request_to_perform.url}: "
            f"{parsed_reply.http_status_code} - {parsed_reply.http_status_reason}",
            url=request_to_perform.url,
            http_status_code=parsed_reply.http_status_code,
            http_status_reason=parsed_reply.http_status_reason,
        )
    return parsed_reply
