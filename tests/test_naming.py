import unittest
from parameterized import parameterized

from mvmover.tools.utils import files_utils, naming_utils
from mvmover.tools.utils.data_structs import EpisodeKey, FileKind
from common import MvMoverTestCase


class NamingTests(MvMoverTestCase):
    @parameterized.expand([
        ("video mp4", "/downloads/Show_(S01E01).mp4", FileKind.VIDEO),
        ("video upper case", "/downloads/Show_(S01E01).MKV", FileKind.VIDEO),
        ("video avi", "Show.avi", FileKind.VIDEO),
        ("video mov", "Show.mov", FileKind.VIDEO),
        ("subtitle srt", "Show_(S01E01).srt", FileKind.SUBTITLE),
        ("subtitle ass", "Show_(S01E01).ass", FileKind.SUBTITLE),
        ("subtitle ssa", "Show_(S01E01).SSA", FileKind.SUBTITLE),
        ("sidecar ttml", "Show_(S01E01).ttml", FileKind.UNSUPPORTED),
        ("sidecar jpg", "Show_(S01E01).jpg", FileKind.UNSUPPORTED),
        ("sidecar txt", "Show_(S01E01).txt", FileKind.UNSUPPORTED),
        ("unknown nfo", "Show_(S01E01).nfo", None),
        ("no extension", "Show_(S01E01)", None),
        ("partial download", "Show_(S01E01).mp4.part", None),
    ])
    def test_classify(self, _, path, expected):
        self.assertEqual(files_utils.classify(path), expected)

    @parameterized.expand([
        ("mediathek", "Folge_3-_Der_Besuch_(S02_E03).mp4", 2, 3),
        ("compact", "Show_(S01E01).mp4", 1, 1),
        ("lower case episode", "Show S10e07.mkv", 10, 7),
        ("long numbers", "Show_(S2024E112).mp4", 2024, 112),
        ("no numbers", "Show.mp4", None, None),
    ])
    def test_season_and_episode_extraction(self, _, name, season, episode):
        self.assertEqual(naming_utils.extract_season(name), season)
        self.assertEqual(naming_utils.extract_episode(name), episode)

    def test_first_match_wins(self):
        self.assertEqual(naming_utils.extract_season("S01 S02 E03 E04"), 1)
        self.assertEqual(naming_utils.extract_episode("S01 S02 E03 E04"), 3)

    @parameterized.expand([
        ("mediathek", "Folge_3_Der_Fall_-_Teil_2_(S01E03).mp4", "Der Fall Teil 2"),
        ("separated code", "Folge_12-_Ein_neuer_Anfang_(S02_E01).mp4", "Ein neuer Anfang"),
        ("no folge prefix", "Show_(S01E01).mp4", "Show"),
        ("language suffix", "Show_(S01E01)_(English).mp4", "Show"),
        ("fallback", "Der Besuch - S01E02.mp4", "Der Besuch"),
        ("fallback in the middle", "Der_S01E02_Besuch.mkv", "Der Besuch"),
        ("no code", "(Der Besuch).mkv", "Der Besuch"),
        ("full path", "/downloads/Show/Show_(S01E01).mp4", "Show"),
    ])
    def test_title_normalization(self, _, name, expected):
        self.assertEqual(naming_utils.normalize_title(name), expected)

    def test_episode_key(self):
        self.assertEqual(str(EpisodeKey(1, 3)), "S01E03")
        self.assertEqual(str(EpisodeKey(12, 103)), "S12E103")
        self.assertTrue(EpisodeKey(0, 0).is_classifiable)
        self.assertFalse(EpisodeKey(None, 3).is_classifiable)
        self.assertFalse(EpisodeKey(1, None).is_classifiable)
        self.assertEqual(EpisodeKey(1, 3), EpisodeKey(1, 3))


if __name__ == '__main__':
    unittest.main()
