"""
Component factory.

Centralises construction of the tool stack and orchestrator from settings,
so the CLI, the chat service, the tool server, and the MCP server all wire
things the same way.
"""

from __future__ import annotations

from contextlib import AsyncExitStack

from gamesage.config.settings import Settings
from gamesage.llm.orchestrator import LLMOrchestrator, load_system_template
from gamesage.tools.executor import ToolExecutor
from gamesage.tools.rawg import RAWGGateway
from gamesage.tools.registry import ToolRegistry, build_default_registry
from gamesage.tools.remote import RemoteToolClient


class AppComponents:
    """
    Factory for building GameSage components from settings.

    Example::

        factory = AppComponents(settings)
        async with AsyncExitStack() as stack:
            executor = await factory.create_executor(stack)
            orchestrator = factory.create_orchestrator(executor)
            response = await orchestrator.generate_response("Top RPGs of 2023?")
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def create_gateway(self) -> RAWGGateway:
        """Create a RAWGGateway from settings."""
        return RAWGGateway.from_settings(self.settings.rawg)

    def create_remote_client(self) -> RemoteToolClient:
        """Create a RemoteToolClient for the configured tool server."""
        return RemoteToolClient(
            base_url=self.settings.server.tool_server_url,
            shared_secret=self.settings.server.shared_secret,
        )

    async def create_registry(self, stack: AsyncExitStack, local: bool = False) -> ToolRegistry:
        """
        Build the tool registry, registering cleanup on ``stack``.

        Uses the remote tool server when one is configured, unless ``local``
        forces the in-process tools (the tool server itself always runs local).
        """
        if self.settings.server.tool_server_url and not local:
            client = await stack.enter_async_context(self.create_remote_client())
            return await client.load_registry()

        gateway = await stack.enter_async_context(self.create_gateway())
        return build_default_registry(gateway)

    async def create_executor(self, stack: AsyncExitStack, local: bool = False) -> ToolExecutor:
        """Build a ToolExecutor over a freshly built registry."""
        return ToolExecutor(await self.create_registry(stack, local=local))

    def create_orchestrator(self, executor: ToolExecutor) -> LLMOrchestrator:
        """Create an LLMOrchestrator from settings + an initialized executor."""
        return LLMOrchestrator(
            settings=self.settings.llm,
            system_template=load_system_template(),
            executor=executor,
        )
