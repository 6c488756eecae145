import unittest

from logterminator.parsers.filenames import (
    classify,
    extract_file_index,
    extract_session_key,
    filename_from_locator,
    is_test_log_file,
)


class ClassifyTests(unittest.TestCase):
    def test_matching_names_yield_key_and_index(self) -> None:
        self.assertEqual(classify("TestEnableTcpdump_ID_1---0.html"), ("TestEnableTcpdump_ID_1", 0))
        self.assertEqual(classify("TestABC_ID_1---10.html"), ("TestABC_ID_1", 10))

    def test_non_test_files_are_ignored(self) -> None:
        for name in (
            "MainRollup.html",
            "summary.html",
            "_ID_1---0.html",
            "TestEnableTcpdump_ID_1.html",
            "TestEnableTcpdump_ID_1---abc.html",
            "TestA_ID_1---0.htm",
            "TestA_ID_1---0.HTML",
            "TestA_ID_1---0.html.bak",
            "TestA---0.html",
            "",
        ):
            with self.subTest(name=name):
                self.assertIsNone(classify(name))

    def test_underscores_digits_and_hyphens_in_name_are_kept(self) -> None:
        result = classify("my_test-2_case_ID_7---3.html")
        self.assertEqual(result.session_key, "my_test-2_case_ID_7")
        self.assertEqual(result.sequence_index, 3)

    def test_last_sequence_suffix_wins(self) -> None:
        result = classify("Name---1_ID_2---5.html")
        self.assertEqual(result.session_key, "Name---1_ID_2")
        self.assertEqual(result.sequence_index, 5)

    def test_later_id_marker_is_enough_when_name_starts_with_one(self) -> None:
        self.assertEqual(classify("_ID_x_ID_1---0.html"), ("_ID_x_ID_1", 0))

    def test_matching_is_case_sensitive(self) -> None:
        self.assertIsNone(classify("TestA_id_1---0.html"))

    def test_sequence_index_is_ascii_digits_only(self) -> None:
        arabic_indic_three = chr(0x0663)
        fullwidth_one = chr(0xFF11)
        for digit in (arabic_indic_three, fullwidth_one):
            with self.subTest(digit=hex(ord(digit))):
                self.assertIsNone(classify(f"TestA_ID_1---{digit}.html"))
        self.assertEqual(classify("TestA_ID_1---007.html"), ("TestA_ID_1", 7))

    def test_is_test_log_file(self) -> None:
        self.assertTrue(is_test_log_file("TestA_ID_1---0.html"))
        self.assertFalse(is_test_log_file("MainRollup.html"))


class LocatorHelperTests(unittest.TestCase):
    def test_filename_from_paths_and_urls(self) -> None:
        self.assertEqual(filename_from_locator("/path/to/TestA_ID_1---0.html"), "TestA_ID_1---0.html")
        self.assertEqual(filename_from_locator("C:\\logs\\TestA_ID_1---0.html"), "TestA_ID_1---0.html")
        self.assertEqual(
            filename_from_locator("http://example.com/logs/Test%20A_ID_1---0.html?x=1"),
            "Test A_ID_1---0.html",
        )

    def test_extract_session_key(self) -> None:
        self.assertEqual(extract_session_key("/path/to/TestEnableTcpdump_ID_1---0.html"), "TestEnableTcpdump_ID_1")
        self.assertIsNone(extract_session_key("/path/to/MainRollup.html"))

    def test_extract_file_index(self) -> None:
        self.assertEqual(extract_file_index("TestEnableTcpdump_ID_1---10.html"), 10)
        self.assertEqual(extract_file_index("no_index.html"), 0)


if __name__ == "__main__":
    unittest.main()
