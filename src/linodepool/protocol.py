"""
Protocol adapter for the Linode API.

Every call is a single form-encoded POST carrying ``api_action`` and the
account ``api_key``. Batches bundle several sub-requests into one POST
(``api_action=batch``) and come back as a JSON array of envelopes in
request order.

Parameter values are a closed set: integers, strings, booleans, and
lists of nested request mappings. Anything else is refused before the
request is sent.

This layer never retries and never inspects the envelope's error list;
callers call ``envelope.raise_for_error()`` or ``envelope.error()``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar, Union

import requests
from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import DEFAULT_ENDPOINT
from .errors import DecodeError, EncodeError, ResponseReadError, TransportError

logger = logging.getLogger(__name__)

ParamValue = Union[int, str, bool, List[Mapping[str, Any]]]
Params = Mapping[str, ParamValue]

ResultT = TypeVar("ResultT", bound=BaseModel)

_SECRET_PARAMS = ("api_key", "rootPass")


def encode_value(key: str, value: ParamValue) -> str:
    """Render one parameter value in its wire form.

    Args:
        key: Parameter name, used in error messages.
        value: The value to encode.

    Returns:
        Integers as decimal text, strings unchanged, booleans and nested
        request lists as JSON.

    Raises:
        EncodeError: If the value type is not supported.
    """
    # bool first: it is a subclass of int.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, Mapping) for v in value):
        try:
            return json.dumps([dict(v) for v in value])
        except (TypeError, ValueError) as exc:
            raise EncodeError(
                f"cannot marshal Linode request parameter {key!r}: {exc}"
            ) from exc
    raise EncodeError(
        f"cannot marshal Linode request parameter {key!r}: "
        f"unsupported type {type(value).__name__}"
    )


def encode_params(params: Params) -> Dict[str, str]:
    """Encode a whole parameter mapping into form values."""
    return {key: encode_value(key, value) for key, value in params.items()}


def redact(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of *params* safe for logging, secrets replaced at any depth."""
    clean: Dict[str, Any] = {}
    for key, value in params.items():
        if key in _SECRET_PARAMS:
            clean[key] = "***"
        elif isinstance(value, list):
            clean[key] = [redact(v) if isinstance(v, Mapping) else v for v in value]
        else:
            clean[key] = value
    return clean


class LinodeClient:
    """Synchronous Linode API client.

    Args:
        api_key: Account API key.
        endpoint: API endpoint URL.
        timeout: Seconds before one HTTP call is abandoned.
        session: Optional requests session to reuse.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()

    def execute(self, params: Params, result_type: Type[ResultT]) -> ResultT:
        """Perform one call and decode its envelope.

        Args:
            params: Request parameters, including ``api_action``.
            result_type: Envelope model the response is validated against.

        Returns:
            The decoded envelope. Provider errors are left inside it.

        Raises:
            EncodeError, TransportError, ResponseReadError, DecodeError.
        """
        data = self._post(params)
        try:
            return result_type.model_validate(data)
        except ValidationError as exc:
            raise DecodeError(f"cannot decode Linode response: {exc}") from exc

    def execute_batch(
        self,
        batch: Sequence[Params],
        result_type: Type[ResultT],
    ) -> List[ResultT]:
        """Perform several calls in one batch.

        Args:
            batch: Sub-requests, each with its own ``api_action``.
            result_type: Envelope model for every sub-result.

        Returns:
            Decoded envelopes in the same order as *batch*. The list
            may be shorter than the request list; callers check.
        """
        params: Dict[str, ParamValue] = {
            "api_action": "batch",
            "api_requestArray": [dict(r) for r in batch],
        }
        data = self._post(params)
        try:
            return TypeAdapter(List[result_type]).validate_python(data)
        except ValidationError as exc:
            raise DecodeError(f"cannot decode Linode response: {exc}") from exc

    def close(self) -> None:
        self._session.close()

    def _post(self, params: Params) -> Any:
        """POST *params* and return the decoded JSON body."""
        values = encode_params(params)
        values["api_key"] = self._api_key

        logger.debug("Linode request: %s", redact(params))

        try:
            resp = self._session.post(
                self._endpoint, data=values, timeout=self._timeout, stream=True,
            )
        except requests.RequestException as exc:
            raise TransportError(f"cannot perform Linode request: {exc}") from exc

        try:
            if resp.status_code >= 400:
                raise TransportError(
                    f"cannot perform Linode request: "
                    f"{resp.status_code} {resp.reason}"
                )
            try:
                body = resp.content
            except requests.RequestException as exc:
                raise ResponseReadError(f"cannot read Linode response: {exc}") from exc
        finally:
            resp.close()

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise DecodeError(f"cannot decode Linode response: {exc}") from exc

        logger.debug("Linode response: %s", data)
        return data
