import asyncio

from app.client.typing_indicator import TypingNotifier


def test_first_keystroke_signals_and_idle_clears():
    async def scenario():
        sent = []

        async def send(is_typing):
            sent.append(is_typing)

        notifier = TypingNotifier(send, idle_seconds=0.05)
        for _ in range(5):
            notifier.keystroke()
            await asyncio.sleep(0.01)
        assert notifier.is_typing
        assert sent == [True]

        await asyncio.sleep(0.1)
        assert not notifier.is_typing
        await notifier.aclose()
        assert sent == [True, False]

    asyncio.run(scenario())


def test_stop_clears_immediately_and_is_idempotent():
    async def scenario():
        sent = []

        async def send(is_typing):
            sent.append(is_typing)

        notifier = TypingNotifier(send, idle_seconds=10)
        notifier.keystroke()
        notifier.stop()
        notifier.stop()
        await notifier.aclose()
        assert sent == [True, False]

    asyncio.run(scenario())


def test_send_failure_does_not_break_the_notifier():
    async def scenario():
        calls = []

        async def send(is_typing):
            calls.append(is_typing)
            raise ConnectionError("offline")

        notifier = TypingNotifier(send, idle_seconds=10)
        notifier.keystroke()
        await notifier.aclose()
        notifier.keystroke()
        await notifier.aclose()
        assert calls == [True, False, True, False]

    asyncio.run(scenario())
