"""CLI 入口模块 -- python -m llmgate <command>

支持的命令：
  complete <prompt>  非流式补全，输出结果、token 统计与成本
  stream <prompt>    流式补全，逐块输出
  respond <prompt>   Responses API 单轮对话，输出结果与 response id
  models             列出当前 provider 的模型目录

provider / 模型 / API key 均从环境变量读取（见 llmgate.config）。
"""

import asyncio
import sys

from .chunks import ErrorChunk, ReasoningChunk, TextChunk, UsageChunk
from .config import load_provider_config
from .exceptions import ProviderError
from .logging_config import setup_logging
from .models import (
    CompletionOptions,
    CompletionRequest,
    ConversationOptions,
    ConversationRequest,
    ModelMessage,
)
from .service import CompletionService, create_service

USAGE = """用法: python -m llmgate <command> [args]
命令:
  complete <prompt>  非流式补全
  stream <prompt>    流式补全
  respond <prompt>   Responses API 单轮对话
  models             列出模型目录"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]
    prompt = " ".join(sys.argv[2:])

    if command in ("complete", "stream", "respond") and not prompt:
        print(f"命令 {command} 需要 prompt 参数")
        sys.exit(1)

    if command == "complete":
        runner = run_complete(prompt)
    elif command == "stream":
        runner = run_stream(prompt)
    elif command == "respond":
        runner = run_respond(prompt)
    elif command == "models":
        runner = run_models()
    else:
        print(f"未知命令: {command}")
        print("可用命令: complete, stream, respond, models")
        sys.exit(1)

    setup_logging()
    try:
        asyncio.run(runner)
    except ProviderError as e:
        print(f"错误: {e}", file=sys.stderr)
        sys.exit(2)


def _build_request(model: str, prompt: str) -> CompletionRequest:
    return CompletionRequest(
        model=model,
        instructions="You are a helpful assistant.",
        messages=[ModelMessage.user(prompt)],
        options=CompletionOptions(with_usage=True, with_cost=True),
    )


async def _service_and_model() -> tuple[CompletionService, str]:
    config = load_provider_config()
    service = await create_service(config)
    return service, config.model


async def run_complete(prompt: str) -> None:
    """执行一次非流式补全"""
    service, model = await _service_and_model()
    response = await service.complete(_build_request(model, prompt))

    print(response.output)
    if response.usage is not None:
        print(f"\ninput tokens: {response.usage.input_tokens}")
        print(f"output tokens: {response.usage.output_tokens}")
    if response.cost is not None:
        print(f"cost: ${response.cost:.6f}")


async def run_respond(prompt: str) -> None:
    """通过 Responses API 执行一轮对话"""
    service, model = await _service_and_model()
    request = ConversationRequest(
        model=model,
        input=prompt,
        instructions="You are a helpful assistant.",
        options=ConversationOptions(with_usage=True, with_cost=True),
    )
    response = await service.respond(request)

    print(response.output)
    if response.response_id:
        print(f"\nresponse id: {response.response_id}")
    if response.cost is not None:
        print(f"cost: ${response.cost:.6f}")


async def run_stream(prompt: str) -> None:
    """执行一次流式补全，Ctrl-C 时取消流"""
    service, model = await _service_and_model()
    async with await service.stream_complete(_build_request(model, prompt)) as stream:
        async for chunk in stream:
            match chunk:
                case TextChunk():
                    print(chunk.text, end="", flush=True)
                case ReasoningChunk():
                    print(f"\033[2m{chunk.text}\033[0m", end="", flush=True)
                case UsageChunk():
                    print(f"\n\n{chunk}")
                    if chunk.cost is not None:
                        print(f"cost: ${chunk.cost:.6f}")
                case ErrorChunk():
                    print(f"\n错误: {chunk.error}", file=sys.stderr)
    print()


async def run_models() -> None:
    """列出模型目录"""
    service, _ = await _service_and_model()
    models = service.registry.list_models()
    if not models:
        print(f"{service.provider_name} 无内置模型目录")
        return
    for info in models:
        pricing = info.pricing
        print(
            f"{info.id:<40} prompt={pricing.prompt or '-':<10} "
            f"completion={pricing.completion or '-':<10} {info.name}"
        )


if __name__ == "__main__":
    main()
