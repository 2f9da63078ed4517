import asyncio
import threading
import unittest

from fakes import FakeClock
from tuna_relay.lib.snapshot import Status
from tuna_relay.providers import DemoProvider, create_provider
from tuna_relay.providers.sonos import SonosProvider, snapshot_from_sonos


class FakeSpeaker:
    """Looks enough like soco.SoCo for the provider."""

    def __init__(self, track_info=None, transport_state="PLAYING", fail=False,
                 release: threading.Event | None = None) -> None:
        self.ip_address = "192.168.0.190"
        self.track_info = track_info or {}
        self.transport_state = transport_state
        self.fail = fail
        self.release = release
        self.reads = 0

    @property
    def group(self):
        return type("Group", (), {"coordinator": self})()

    def get_current_track_info(self) -> dict:
        self.reads += 1
        if self.release is not None:
            self.release.wait(5)
        if self.fail:
            raise OSError("No route to host")
        return self.track_info

    def get_current_transport_info(self) -> dict:
        return {"current_transport_state": self.transport_state}


TRACK = {
    "title": "Song",
    "artist": "Band",
    "album_art": "/getaa?s=1&u=x-sonos-spotify",
    "position": "0:01:05",
    "duration": "0:03:30",
}


class TestSnapshotFromSonos(unittest.TestCase):
    def test_maps_fields(self) -> None:
        s = snapshot_from_sonos(TRACK, {"current_transport_state": "PLAYING"}, "10.0.0.2")
        self.assertEqual(s.title, "Song")
        self.assertEqual(s.artists, ("Band",))
        self.assertIs(s.status, Status.PLAYING)
        self.assertEqual((s.progress_ms, s.duration_ms), (65_000, 210_000))
        self.assertEqual(s.cover, "http://10.0.0.2:1400/getaa?s=1&u=x-sonos-spotify")

    def test_transport_states(self) -> None:
        expected = {
            "TRANSITIONING": Status.PLAYING,
            "PAUSED_PLAYBACK": Status.STOPPED,
            "STOPPED": Status.STOPPED,
            "NO_MEDIA_PRESENT": Status.UNKNOWN,
        }
        for state, status in expected.items():
            s = snapshot_from_sonos(TRACK, {"current_transport_state": state}, "ip")
            self.assertIs(s.status, status, state)

    def test_no_title_means_no_data(self) -> None:
        self.assertIsNone(snapshot_from_sonos({"title": "  "}, {}, "ip"))

    def test_absolute_cover_and_missing_artist(self) -> None:
        info = {"title": "Radio", "album_art": "https://cdn/x.jpg", "position": "NOT_IMPLEMENTED"}
        s = snapshot_from_sonos(info, {}, "ip")
        self.assertEqual(s.cover, "https://cdn/x.jpg")
        self.assertEqual(s.artists, ())
        self.assertEqual(s.progress_ms, 0)


class TestSonosProvider(unittest.IsolatedAsyncioTestCase):
    async def test_sample_reads_coordinator(self) -> None:
        provider = SonosProvider("192.168.0.190", speaker=FakeSpeaker(TRACK, "PAUSED_PLAYBACK"))
        s = await provider.sample()
        self.assertEqual(s.title, "Song")
        self.assertIs(s.status, Status.STOPPED)
        await provider.close()

    async def test_unreachable_speaker_is_no_data(self) -> None:
        provider = SonosProvider("192.168.0.190", speaker=FakeSpeaker(fail=True))
        self.assertIsNone(await provider.sample())
        await provider.close()

    async def test_slow_speaker_times_out_without_stacking_reads(self) -> None:
        release = threading.Event()
        speaker = FakeSpeaker(TRACK, release=release)
        provider = SonosProvider("192.168.0.190", speaker=speaker, timeout=0.05)
        try:
            started = asyncio.get_running_loop().time()
            self.assertIsNone(await provider.sample())
            self.assertLess(asyncio.get_running_loop().time() - started, 1.0)

            # hung read still running: the next tick does not queue another one
            self.assertIsNone(await provider.sample())
            self.assertEqual(speaker.reads, 1)

            release.set()
            await asyncio.sleep(0.1)
            s = await provider.sample()
            self.assertEqual(s.title, "Song")
            self.assertEqual(speaker.reads, 2)
        finally:
            release.set()
            await provider.close()


class TestDemoProvider(unittest.IsolatedAsyncioTestCase):
    async def test_plays_through_playlist_then_pauses(self) -> None:
        clock = FakeClock()
        playlist = [
            {"title": "One", "artists": ("a",), "duration_ms": 10_000},
            {"title": "Two", "artists": ("b",), "duration_ms": 5_000},
        ]
        provider = DemoProvider(playlist, clock=clock)

        s = await provider.sample()
        self.assertEqual((s.title, s.progress_ms, s.status), ("One", 0, Status.PLAYING))

        clock.now = 12.0
        s = await provider.sample()
        self.assertEqual((s.title, s.progress_ms), ("Two", 2_000))

        clock.now = 16.0
        s = await provider.sample()
        self.assertEqual((s.title, s.status), ("Two", Status.STOPPED))

        clock.now = 21.0
        s = await provider.sample()
        self.assertEqual((s.title, s.progress_ms), ("One", 1_000))


class TestCreateProvider(unittest.TestCase):
    def test_default_is_demo(self) -> None:
        self.assertIsInstance(create_provider({}), DemoProvider)

    def test_sonos_needs_ip(self) -> None:
        with self.assertRaises(ValueError):
            create_provider({"type": "sonos"})

    def test_sonos_gets_sample_timeout(self) -> None:
        provider = create_provider({"type": "sonos", "ip": "192.168.0.190"}, timeout=0.5)
        self.assertIsInstance(provider, SonosProvider)
        self.assertEqual(provider.timeout, 0.5)
        provider._executor.shutdown(wait=False)

    def test_unknown_type(self) -> None:
        with self.assertRaises(ValueError):
            create_provider({"type": "winamp"})


if __name__ == "__main__":
    unittest.main()
