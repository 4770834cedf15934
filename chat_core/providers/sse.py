"""流式适配器共用的 HTTP / SSE 辅助函数。

OpenAI 与 Google 的流式接口都以 `data: {...}` 行推送增量，
这里负责：

1. 在 invoke 内同步建立上游连接并检查状态码（失败即抛错）。
2. 把连接生命周期交给 ExitStack，由返回的生成器在结束时关闭。
3. 逐行解析 data 行为 JSON 字典。
"""

import json
import logging
from contextlib import ExitStack
from typing import Any, Callable, Dict, Iterator, Optional

import httpx

from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, StreamInterruptedError
from chat_core.domain.models import StreamEnvelope
from chat_core.infrastructure.logging.logger import log_event


def open_stream(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: Optional[float],
    provider: str,
) -> tuple[ExitStack, httpx.Response]:
    """同步打开上游流式连接。

    返回 (stack, resp)，调用方负责在流结束后 stack.close()。
    """

    stack = ExitStack()
    try:
        client = stack.enter_context(httpx.Client(timeout=timeout, trust_env=False))
        resp = stack.enter_context(client.stream("POST", url, json=payload, headers=headers))
    except httpx.RequestError as e:
        stack.close()
        raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=provider)
    except Exception:
        stack.close()
        raise

    if resp.status_code >= 400:
        try:
            resp.read()
            body = resp.text
        finally:
            stack.close()
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{provider} rate limit", provider=provider)
        raise ApiError(code="API_ERROR", message=body, http_status=resp.status_code, provider=provider)
    return stack, resp


def iter_sse_data(resp: httpx.Response) -> Iterator[Dict[str, Any]]:
    """解析 SSE 行，跳过空行、[DONE] 与无法解析的行。"""

    for line in resp.iter_lines():
        if not line:
            continue
        data_str = line
        if data_str.startswith("data:"):
            data_str = data_str[5:].strip()
        else:
            data_str = data_str.strip()
        if not data_str or data_str == "[DONE]":
            continue
        try:
            chunk = json.loads(data_str)
        except json.JSONDecodeError:
            continue
        if isinstance(chunk, dict):
            yield chunk


def stream_fragments(
    stack: ExitStack,
    resp: httpx.Response,
    extract: Callable[[Dict[str, Any]], str],
    provider: str,
    log_ctx: Dict[str, Any],
) -> StreamEnvelope:
    """把上游 SSE 流包装为 StreamEnvelope。

    每个 chunk 经 extract 取出文本片段后按 UTF-8 编码写出。
    上游中途出错时记录 StreamInterruptedError 并直接结束，已写出的片段保留。
    """

    def _generate() -> Iterator[bytes]:
        fragments = 0
        try:
            for chunk in iter_sse_data(resp):
                text = extract(chunk)
                fragments += 1
                yield text.encode("utf-8")
        except Exception as e:
            err = StreamInterruptedError(provider=provider, message=str(e))
            log_event(logging.ERROR, "Upstream stream interrupted", log_ctx, code=err.code, error=err.message, fragments=fragments)
        finally:
            stack.close()
            log_event(logging.INFO, "Upstream stream closed", log_ctx, fragments=fragments)

    return StreamEnvelope(chunks=_generate(), on_close=stack.close)
