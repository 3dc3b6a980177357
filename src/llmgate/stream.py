"""StreamAdapter -- 流式响应适配器

把 provider 的增量游标转换为类型化 chunk 序列：
- 每个打开的流对应一个后台 asyncio.Task（生产者），独占一个有界队列
- 消费方通过 ChunkStream 异步迭代；生产者结束且队列排空即迭代结束
- 两个挂起点（等待 provider 下一个增量、向满队列写入）都与取消信号竞争，
  取消后生产者不会阻塞，也不再与 provider 交互

状态机: CREATED -> STREAMING -> {COMPLETED, CANCELED, ERRORED}
"""

import asyncio
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Any

import structlog

from .chunks import ErrorChunk, ReasoningChunk, StreamChunk, TextChunk, UsageChunk
from .cost import CostCalculator
from .exceptions import ResponseError, StreamError
from .models import CompletionOptions, ModelInfo, TokenUsage
from .wire import first_choice, read_field

log = structlog.get_logger()

# 输出队列容量：吸收 provider 突发，同时限制内存占用
STREAM_BUFFER_SIZE = 10


class StreamState(StrEnum):
    """流生命周期状态"""

    CREATED = "created"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELED = "canceled"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({StreamState.COMPLETED, StreamState.CANCELED, StreamState.ERRORED})


async def _pull(iterator: AsyncIterator[Any]) -> tuple[bool, Any]:
    """读取下一个增量，返回 (是否已耗尽, 增量)"""
    try:
        return False, await anext(iterator)
    except StopAsyncIteration:
        return True, None


# Responses API 流事件类型
EVENT_TEXT_DELTA = "response.output_text.delta"
EVENT_REASONING_DELTA = "response.reasoning_summary_text.delta"
EVENT_COMPLETED = "response.completed"
EVENT_INCOMPLETE = "response.incomplete"
EVENT_FAILED = "response.failed"
EVENT_ERROR = "error"


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class ChunkStream:
    """单个流的消费端

    支持 ``async for``、``async with`` 与显式 ``aclose()``。
    提前退出（break / aclose / 离开 async with）会终止生产者任务。
    """

    def __init__(self, adapter: "StreamAdapter", queue: asyncio.Queue, producer: asyncio.Task) -> None:
        self._adapter = adapter
        self._queue = queue
        self._producer = producer
        self._closed = False

    @property
    def producer(self) -> asyncio.Task:
        """后台生产者任务"""
        return self._producer

    @property
    def state(self) -> StreamState:
        return self._adapter.state

    def __aiter__(self) -> "ChunkStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._closed:
            raise StopAsyncIteration
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._producer.done():
                # 生产者已结束且队列已排空：流关闭
                self._raise_if_failed()
                raise StopAsyncIteration

            getter = asyncio.ensure_future(self._queue.get())
            try:
                await asyncio.wait({getter, self._producer}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                getter.cancel()
                raise
            if not getter.done():
                getter.cancel()
                await asyncio.wait({getter})
            if not getter.cancelled():
                return getter.result()

    def _raise_if_failed(self) -> None:
        if self._producer.cancelled():
            return
        exc = self._producer.exception()
        if exc is not None:
            raise exc

    async def aclose(self) -> None:
        """关闭流：通知生产者停止并等待其结束（幂等）"""
        if self._closed:
            return
        self._closed = True
        self._adapter.close()
        if not self._producer.done():
            self._producer.cancel()
        await asyncio.wait({self._producer})

    async def __aenter__(self) -> "ChunkStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def collect(self) -> list[StreamChunk]:
        """读完整个流并返回所有 chunk"""
        return [chunk async for chunk in self]


class StreamAdapter:
    """流式适配器，一个实例只服务一次流式调用

    Args:
        backend: 实现 create_stream / create_response_stream 的后端（LiteLLMClient / EchoBackend）
        options: 补全选项（with_usage / with_cost）
        model_info: 成本计算所用的模型目录条目，None 时成本不可用
        cancel_event: 调用方取消信号
        buffer_size: 输出队列容量
    """

    def __init__(
        self,
        backend: Any,
        options: CompletionOptions | None = None,
        model_info: ModelInfo | None = None,
        cancel_event: asyncio.Event | None = None,
        buffer_size: int = STREAM_BUFFER_SIZE,
    ) -> None:
        self._backend = backend
        self._provider_name: str = backend.provider_name
        self._options = options or CompletionOptions()
        self._model_info = model_info
        self._cancel_event = cancel_event
        self._closed = asyncio.Event()
        self._buffer_size = buffer_size
        self._queue: asyncio.Queue | None = None
        self._state = StreamState.CREATED
        self._chunk_count = 0
        self._model = ""
        self._conversation = False

    @property
    def state(self) -> StreamState:
        return self._state

    def close(self) -> None:
        """消费端关闭，等价于取消"""
        self._closed.set()

    def _is_canceled(self) -> bool:
        return self._closed.is_set() or (
            self._cancel_event is not None and self._cancel_event.is_set()
        )

    def _stop_events(self) -> list[asyncio.Event]:
        events = [self._closed]
        if self._cancel_event is not None:
            events.append(self._cancel_event)
        return events

    async def open_stream(
        self, wire_request: dict[str, Any], conversation: bool = False
    ) -> ChunkStream:
        """发起流式调用并启动后台生产者

        流建立失败（RequestError）在此同步抛出；之后的错误以 ErrorChunk 投递。

        Args:
            wire_request: RequestTranslator 产出的 wire 请求
            conversation: True 时走 Responses API（create_response_stream），按事件类型解析增量

        Returns:
            ChunkStream

        Raises:
            RuntimeError: 同一实例重复打开
            RequestError: provider 拒绝建立流
        """
        if self._state is not StreamState.CREATED or self._queue is not None:
            raise RuntimeError("StreamAdapter can only open one stream")
        self._model = wire_request.get("model", "")
        self._queue = asyncio.Queue(maxsize=self._buffer_size)

        self._conversation = conversation
        cursor = None
        if not self._is_canceled():
            if conversation:
                cursor = await self._backend.create_response_stream(wire_request)
            else:
                cursor = await self._backend.create_stream(wire_request)

        producer = asyncio.create_task(
            self._run(cursor),
            name=f"llmgate-stream-{self._provider_name}-{self._model}",
        )
        log.debug("stream_opened", provider=self._provider_name, model=self._model)
        return ChunkStream(self, self._queue, producer)

    # ============================================================
    # 生产者
    # ============================================================

    async def _run(self, cursor: Any) -> None:
        self._state = StreamState.STREAMING
        usage: TokenUsage | None = None
        try:
            if cursor is None:
                self._finish_canceled()
                return
            iterator = cursor.__aiter__()
            while True:
                if self._is_canceled():
                    self._finish_canceled()
                    return
                try:
                    pulled = await self._race(asyncio.ensure_future(_pull(iterator)))
                except Exception as e:
                    await self._finish_errored(e)
                    return
                if pulled is None:
                    self._finish_canceled()
                    return
                exhausted, unit = pulled
                if exhausted:
                    break

                if self._conversation:
                    reasoning, text, raw_usage, failure = self._parse_event(unit)
                    if failure:
                        await self._finish_errored(ResponseError(self._provider_name, failure))
                        return
                else:
                    reasoning, text, raw_usage = self._parse_unit(unit)
                if raw_usage is not None:
                    usage = CostCalculator.parse_usage(raw_usage)
                if reasoning and not await self._send(ReasoningChunk(text=reasoning)):
                    self._finish_canceled()
                    return
                if text and not await self._send(TextChunk(text=text)):
                    self._finish_canceled()
                    return

            if self._options.with_usage:
                final_usage = usage or TokenUsage(requests=1)
                cost = None
                if self._options.with_cost:
                    cost = CostCalculator.calculate_cost(self._model_info, final_usage)
                    if cost is None:
                        log.debug("cost_unavailable", model=self._model)
                if not await self._send(UsageChunk(usage=final_usage, cost=cost)):
                    self._finish_canceled()
                    return

            self._state = StreamState.COMPLETED
            log.debug(
                "stream_finished",
                provider=self._provider_name,
                model=self._model,
                chunk_count=self._chunk_count,
            )
        except asyncio.CancelledError:
            self._mark_canceled()
            raise
        finally:
            await self._close_cursor(cursor)

    @staticmethod
    def _parse_unit(unit: Any) -> tuple[str, str, Any]:
        """解析单个增量 -> (reasoning, text, usage)

        形状不符合预期的增量视为空增量。
        """
        delta = read_field(first_choice(unit), "delta")
        reasoning = _text(read_field(delta, "reasoning_content")) or _text(
            read_field(delta, "reasoning")
        )
        text = _text(read_field(delta, "content"))
        return reasoning, text, read_field(unit, "usage")

    @staticmethod
    def _parse_event(event: Any) -> tuple[str, str, Any, str]:
        """解析单个 Responses API 事件 -> (reasoning, text, usage, failure)

        未识别的事件类型视为空增量。
        """
        event_type = read_field(event, "type")
        if event_type == EVENT_TEXT_DELTA:
            return "", _text(read_field(event, "delta")), None, ""
        if event_type == EVENT_REASONING_DELTA:
            return _text(read_field(event, "delta")), "", None, ""
        if event_type in (EVENT_COMPLETED, EVENT_INCOMPLETE):
            return "", "", read_field(read_field(event, "response"), "usage"), ""
        if event_type == EVENT_FAILED:
            error = read_field(read_field(event, "response"), "error")
            return "", "", None, _text(read_field(error, "message")) or "response failed"
        if event_type == EVENT_ERROR:
            return "", "", None, _text(read_field(event, "message")) or "response failed"
        return "", "", None, ""

    async def _race(self, task: asyncio.Future) -> Any:
        """task 与取消信号竞争

        Returns:
            task 的结果；取消信号先到时返回 None（task 被取消）
        """
        waiters = [asyncio.ensure_future(event.wait()) for event in self._stop_events()]
        try:
            await asyncio.wait({task, *waiters}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            raise
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            if pending:
                await asyncio.wait(pending)

        if not task.done():
            task.cancel()
            await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    async def _send(self, chunk: StreamChunk) -> bool:
        """向输出队列写入 chunk；被取消时返回 False"""
        if self._is_canceled():
            return False
        try:
            self._queue.put_nowait(chunk)
        except asyncio.QueueFull:
            if await self._race(asyncio.ensure_future(self._put(chunk))) is None:
                return False
        self._chunk_count += 1
        return True

    async def _put(self, chunk: StreamChunk) -> bool:
        await self._queue.put(chunk)
        return True

    def _mark_canceled(self) -> None:
        """进入 CANCELED 状态；stream_canceled 事件只在此处记录一次"""
        if self._state is StreamState.CANCELED:
            return
        self._state = StreamState.CANCELED
        log.info(
            "stream_canceled",
            provider=self._provider_name,
            model=self._model,
            chunk_count=self._chunk_count,
        )

    def _finish_canceled(self) -> None:
        """取消收尾：非阻塞地尝试投递取消通知，队列满或消费端已关闭则丢弃"""
        self._mark_canceled()
        if not self._closed.is_set():
            notice = ErrorChunk(
                error=StreamError(self._provider_name, "stream canceled", canceled=True)
            )
            try:
                self._queue.put_nowait(notice)
            except asyncio.QueueFull:
                log.debug("stream_cancel_notice_dropped", provider=self._provider_name)

    async def _finish_errored(self, error: Exception) -> None:
        """provider 流中错误：已取消时静默，否则投递一个 ErrorChunk"""
        if self._is_canceled():
            self._finish_canceled()
            return
        self._state = StreamState.ERRORED
        log.warning(
            "stream_error",
            provider=self._provider_name,
            model=self._model,
            chunk_count=self._chunk_count,
            error=str(error),
            error_type=type(error).__name__,
        )
        stream_error = StreamError(self._provider_name, "stream interrupted", cause=error)
        if not await self._send(ErrorChunk(error=stream_error)):
            self._mark_canceled()

    async def _close_cursor(self, cursor: Any) -> None:
        """释放 provider 游标（如支持 aclose）"""
        close = getattr(cursor, "aclose", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            log.debug("stream_cursor_close_failed", error=str(e))
