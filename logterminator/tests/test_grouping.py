import random
import unittest

from logterminator.ingestion.grouping import group_files
from logterminator.models import FileRef


def _refs(*names: str) -> list[FileRef]:
    return [FileRef(locator=f"/logs/{name}", filename=name) for name in names]


class GroupFilesTests(unittest.TestCase):
    def test_groups_sorted_by_key_and_sequence(self) -> None:
        refs = _refs(
            "TestEnableTcpdump_ID_1---1.html",
            "TestABC_ID_1---2.html",
            "MainRollup.html",
            "TestABC_ID_1---0.html",
            "TestEnableTcpdump_ID_1---0.html",
            "TestABC_ID_1---10.html",
            "summary.html",
        )
        groups = group_files(refs)

        self.assertEqual([g.sessionKey for g in groups], ["TestABC_ID_1", "TestEnableTcpdump_ID_1"])
        self.assertEqual([f.sequenceIndex for f in groups[0].files], [0, 2, 10])
        self.assertEqual([f.ref.filename for f in groups[1].files], [
            "TestEnableTcpdump_ID_1---0.html",
            "TestEnableTcpdump_ID_1---1.html",
        ])

    def test_grouping_is_deterministic_for_any_listing_order(self) -> None:
        names = [f"Test{t}_ID_{n}---{i}.html" for t in "ABC" for n in (1, 2) for i in range(4)]
        baseline = group_files(_refs(*names))
        shuffled = list(names)
        for seed in range(5):
            random.Random(seed).shuffle(shuffled)
            self.assertEqual(group_files(_refs(*shuffled)), baseline)

    def test_colliding_sequence_indices_keep_one_file(self) -> None:
        refs = _refs("T_ID_1---01.html", "T_ID_1---1.html", "T_ID_1---0.html", "T_ID_1---001.html")
        for order in (refs, list(reversed(refs))):
            (group,) = group_files(order)
            self.assertEqual([f.ref.filename for f in group.files], ["T_ID_1---0.html", "T_ID_1---001.html"])
            self.assertEqual([f.ref.filename for f in group.duplicates], ["T_ID_1---01.html", "T_ID_1---1.html"])
            self.assertEqual({f.sequenceIndex for f in group.duplicates}, {1})

    def test_selected_subset(self) -> None:
        refs = _refs("TestA_ID_1---0.html", "TestB_ID_1---0.html", "TestC_ID_1---0.html")
        groups = group_files(refs, selected=["TestC_ID_1", "TestA_ID_1", "Unknown_ID_9"])
        self.assertEqual([g.sessionKey for g in groups], ["TestA_ID_1", "TestC_ID_1"])

    def test_empty_selection_selects_nothing(self) -> None:
        self.assertEqual(group_files(_refs("TestA_ID_1---0.html"), selected=[]), [])

    def test_no_matching_files(self) -> None:
        self.assertEqual(group_files(_refs("MainRollup.html", "notes.txt")), [])


if __name__ == "__main__":
    unittest.main()
