import logging
import typing


def log(message: typing.Any, name: str = "csw_catalog", debug: bool = True):
    level = logging.INFO if debug else logging.WARNING
    logging.getLogger(name).log(level, str(message))


def clean_duplicated_question_marks(url: typing.Optional[str]) -> typing.Optional[str]:
    """Join any extra `?` separators of the input URL into its query string.

    Some catalogues publish references such as ``http://host/wms?service=WMS?``,
    which are turned into ``http://host/wms?service=WMS&``.

    """

    if isinstance(url, str):
        url_parts = url.split("?")
        if len(url_parts) > 2:
            result = f"{url_parts[0]}?{'&'.join(url_parts[1:])}"
        else:
            result = url
    else:
        result = url
    return result

