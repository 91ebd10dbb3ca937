"""
Tests for CommandContext.

This module tests the CommandContext dataclass that encapsulates
command execution context.
"""

import threading

from cmd3.context import CommandContext
from cmd3.control_flow import CancellationToken


class TestCommandContextCreation:
    """Test CommandContext creation and initialization"""

    def test_default_creation(self):
        """Test creating context with default values"""
        ctx = CommandContext()
        assert ctx.registry is None
        assert isinstance(ctx.env, dict)
        assert not ctx.cancelled
        assert ctx.drain_messages() == []

    def test_creation_with_values(self, registry):
        """Test creating context with specific values"""
        env = {'USER': 'alice', 'HOME': '/home/alice'}
        ctx = CommandContext(registry=registry, env=env)
        assert ctx.env is env
        assert ctx.registry is registry

    def test_default_env_is_a_copy(self):
        assert CommandContext().env is not CommandContext().env


class TestRegistryAccess:
    """Test lookups through the context"""

    def test_lookup(self, context, registry):
        assert context.lookup('echo') is registry.lookup('echo')
        assert context.lookup('nosuch') is None

    def test_command_names(self, context):
        assert context.command_names() == ['buzz', 'cat', 'echo', 'help', 'upper']

    def test_without_registry(self):
        ctx = CommandContext()
        assert ctx.lookup('echo') is None
        assert ctx.command_names() == []


class TestPipelineContext:
    """Test per-pipeline derivation"""

    def test_for_pipeline_shares_state(self, context):
        token = CancellationToken()
        derived = context.for_pipeline(token)

        assert derived.token is token
        assert derived.registry is context.registry
        assert derived.env is context.env
        derived.add_async_message('from stage')
        assert context.drain_messages() == ['from stage']

    def test_cancellation_is_per_pipeline(self, context):
        first = context.for_pipeline(CancellationToken())
        second = context.for_pipeline(CancellationToken())
        first.token.cancel()
        assert first.cancelled
        assert not second.cancelled
        assert not context.cancelled


class TestAsyncMessages:
    """Test the async message queue"""

    def test_drain_in_order(self):
        ctx = CommandContext()
        ctx.add_async_message('one')
        ctx.add_async_message('two')
        assert ctx.drain_messages() == ['one', 'two']
        assert ctx.drain_messages() == []

    def test_messages_from_many_threads(self):
        ctx = CommandContext()

        def post(n):
            for i in range(50):
                ctx.add_async_message(f'{n}-{i}')

        threads = [threading.Thread(target=post, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        messages = ctx.drain_messages()
        assert len(messages) == 200
        assert [m for m in messages if m.startswith('0-')] == [f'0-{i}' for i in range(50)]

    def test_repr(self, context):
        context.add_async_message('pending')
        text = repr(context)
        assert 'commands=5' in text
        assert 'pending_messages=1' in text
