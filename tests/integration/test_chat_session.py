import asyncio
import struct

import pytest

from conftest import FakeChat, FakeModels, FakeVeo, attach_veo, fake_client, no_sleep, speech_response, veo_operation
from mazingira.agents.agent import MazingiraAgent
from mazingira.agents.director.director import DirectorService, VeoJobBackend, policy_from_settings
from mazingira.agents.liaison.prompts import CHAT_ERROR_TEXT, GREETING
from mazingira.chat.session import ChatSession
from mazingira.shared.audio import AudioContextProvider
from mazingira.shared.errors import ChatBusyError
from mazingira.shared.poller import JobPoller, PollPolicy


def _session(cfg, client, policy=None, poll_sleep=no_sleep):
    poller = JobPoller(VeoJobBackend(cfg, client), policy or policy_from_settings(cfg), sleep=poll_sleep)
    agent = MazingiraAgent(cfg, client=client, director=DirectorService(cfg, client, poller=poller))
    return ChatSession(agent, AudioContextProvider(cfg.speech_sample_rate))


async def _drain(session, message):
    return [text async for text in session.send(message)]


@pytest.mark.asyncio
async def test_reply_grows_in_place_after_user_turn(settings) -> None:
    session = _session(settings, fake_client(chat=FakeChat(["Two ", "kilns ", "spotted."])))

    snapshots = await _drain(session, "  what is burning near Tsavo?  ")

    assert snapshots == ["Two ", "Two kilns ", "Two kilns spotted."]
    assert [(t.role, t.text) for t in session.turns] == [
        ("agent", GREETING),
        ("user", "what is burning near Tsavo?"),
        ("agent", "Two kilns spotted."),
    ]
    assert not session.loading
    assert session.last_error is None


@pytest.mark.asyncio
async def test_blank_message_is_ignored(settings) -> None:
    session = _session(settings, fake_client())

    assert await _drain(session, "   ") == []
    assert len(session.turns) == 1


@pytest.mark.asyncio
async def test_failed_reply_appends_one_error_turn(settings) -> None:
    session = _session(settings, fake_client(chat=FakeChat(open_error=ConnectionError("refused"))))

    assert await _drain(session, "hello") == []

    assert [t.text for t in session.turns[1:]] == ["hello", CHAT_ERROR_TEXT]
    assert session.last_error == CHAT_ERROR_TEXT
    assert not session.loading


@pytest.mark.asyncio
async def test_interrupted_reply_keeps_partial_text(settings) -> None:
    session = _session(settings, fake_client(chat=FakeChat(["Patrol ", "heading ", "north"], fail_after=2)))

    await _drain(session, "where is the patrol?")

    assert [t.text for t in session.turns[1:]] == ["where is the patrol?", "Patrol heading ", CHAT_ERROR_TEXT]


@pytest.mark.asyncio
async def test_speech_reuses_one_audio_context(settings) -> None:
    pcm = struct.pack("<2h", 1000, -1000)
    session = _session(settings, fake_client(FakeModels([speech_response(pcm), speech_response(pcm)])))

    first = await session.speak(0)
    second = await session.speak(0)

    assert first[:4] == b"RIFF"
    assert second == first
    assert session.audio.created == 1
    assert session.audio.get().active_sources == 0
    assert session.speaking is None


@pytest.mark.asyncio
async def test_speech_failure_returns_none_and_clears_flag(settings) -> None:
    session = _session(settings, fake_client(FakeModels(error=ConnectionError("tts offline"))))

    assert await session.speak(0) is None
    assert session.speaking is None
    assert session.audio.created == 0
    with pytest.raises(IndexError):
        await session.speak(5)


@pytest.mark.asyncio
async def test_visualize_stores_media_url_once(settings) -> None:
    veo = FakeVeo([veo_operation(), veo_operation(done=True, uri="https://videos.example/clip.mp4")])
    session = _session(settings, attach_veo(fake_client(), veo))

    url = await session.visualize(0)
    again = await session.visualize(0)

    assert url == again == "https://videos.example/clip.mp4"
    assert session.turns[0].media_url == url
    assert len(veo.submitted) == 1
    assert session.generating_video is None
    assert session.video_progress is None


@pytest.mark.asyncio
async def test_cancelled_video_clears_flag_and_stops_polling(settings) -> None:
    veo = FakeVeo(forever_running=True)
    policy = PollPolicy(interval_s=0.01, max_wait_s=None)
    session = _session(settings, attach_veo(fake_client(), veo), policy=policy, poll_sleep=asyncio.sleep)

    task = asyncio.create_task(session.visualize(0))
    while veo.gets < 2:
        await asyncio.sleep(0.005)
    assert session.generating_video == 0
    assert session.video_progress is not None
    assert await session.visualize(0) is None

    assert session.cancel_video()
    assert await task is None
    polls = veo.gets
    await asyncio.sleep(0.05)

    assert veo.gets == polls
    assert session.generating_video is None
    assert session.video_progress is None
    assert session.turns[0].media_url is None
    assert not session.cancel_video()


@pytest.mark.asyncio
async def test_claimed_slot_rejects_a_second_message(settings) -> None:
    session = _session(settings, fake_client(chat=FakeChat(["Noted."])))

    assert session.begin("   ") is None
    text = session.begin("log a charcoal sighting")
    with pytest.raises(ChatBusyError):
        session.begin("second message")

    assert [s async for s in session.reply(text)] == ["Noted."]
    assert [t.role for t in session.turns] == ["agent", "user", "agent"]
    assert not session.loading
