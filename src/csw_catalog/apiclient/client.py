import typing

import httpx

from .. import (
    conf,
    network,
)
from ..utils import log
from . import (
    csw,
    filters,
    models,
)


class CswCatalogClient:
    """Asynchronous client for CSW 2.0.2 catalogues.

    Every operation performs exactly one HTTP request and parses its response.
    Nothing is cached or shared between calls, so operations may be awaited
    concurrently.

    Exception reports sent back by the catalogue are returned as
    ``models.ProtocolError`` instances. Network failures raise
    ``errors.TransportError`` and unresolvable bounding box CRSs raise
    ``errors.CrsResolutionError``.

    """

    network_requests_timeout: int
    auth: typing.Optional[typing.Tuple[str, str]]
    headers: typing.Dict[str, str]

    def __init__(
        self,
        network_requests_timeout: int = conf.DEFAULT_NETWORK_TIMEOUT,
        auth: typing.Optional[typing.Tuple[str, str]] = None,
        headers: typing.Optional[typing.Dict[str, str]] = None,
        transport: typing.Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.network_requests_timeout = network_requests_timeout
        self.auth = auth
        self.headers = dict(headers or {})
        self._transport = transport

    @classmethod
    def from_connection_settings(
        cls, connection_settings: conf.ConnectionSettings, **kwargs
    ):
        if connection_settings.username is not None:
            auth = (connection_settings.username, connection_settings.password or "")
        else:
            auth = None
        return cls(
            network_requests_timeout=connection_settings.network_requests_timeout,
            auth=auth,
            **kwargs,
        )

    def _get_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.network_requests_timeout / 1000,
            auth=self.auth,
            headers=self.headers,
            transport=self._transport,
            follow_redirects=True,
        )

    async def _perform(
        self, request_to_perform: network.RequestToPerform
    ) -> network.ParsedNetworkReply:
        async with self._get_http_client() as http_client:
            return await network.perform_request(http_client, request_to_perform)

    async def get_record_by_id(
        self, url: str
    ) -> typing.Optional[typing.Union[models.CatalogRecord, models.ProtocolError]]:
        """Retrieve a single record from a GetRecordById URL.

        Only the record's Dublin Core elements are parsed.

        """

        reply = await self._perform(csw.build_get_record_by_id(url))
        return csw.parse_get_record_by_id_response(reply.response_body)

    async def get_records(
        self,
        url: str,
        start_position: int,
        max_records: int,
        filter_: typing.Optional[typing.Union[str, filters.Filter]] = None,
    ) -> typing.Optional[typing.Union[models.SearchResult, models.ProtocolError]]:
        search_request = models.SearchRequest(start_position, max_records, filter_)
        reply = await self._perform(csw.build_get_records_request(url, search_request))
        result = csw.parse_get_records_response(reply.response_body)
        if isinstance(result, models.SearchResult):
            log(
                f"Received {result.number_of_records_returned} of "
                f"{result.number_of_records_matched} matching records"
            )
        elif isinstance(result, models.ProtocolError):
            log(f"Catalogue replied with an exception: {result.message}", debug=False)
        return result

    async def text_search(
        self,
        url: str,
        start_position: int,
        max_records: int,
        text: typing.Optional[str] = None,
    ) -> typing.Optional[typing.Union[models.SearchResult, models.ProtocolError]]:
        return await self.get_records(url, start_position, max_records, text)

    async def workspace_search(
        self,
        url: str,
        start_position: int,
        max_records: int,
        text: typing.Optional[str] = None,
        workspace: typing.Optional[str] = None,
    ) -> typing.Optional[typing.Union[models.SearchResult, models.ProtocolError]]:
        return await self.get_records(
            url,
            start_position,
            max_records,
            filters.workspace_filter(text, workspace),
        )
