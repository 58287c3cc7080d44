from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from rtd.detector.models.model_spec import ModelSpec
from rtd.detector.vocabulary import COCO_CLASSES


class ModelSpecTests(unittest.TestCase):
    def test_vocabulary_reads_labels_ignoring_comments_and_blank_lines(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            labels_path = Path(tmpdir) / "labels.txt"
            labels_path.write_text(
                "\n# comment\nperson\n bicycle \n#another\n\ncar\n",
                encoding="utf-8",
            )
            spec = ModelSpec(name="labels-test", labels_path=str(labels_path))

            self.assertEqual(spec.vocabulary(), ["person", "bicycle", "car"])

    def test_vocabulary_defaults_to_coco(self) -> None:
        spec = ModelSpec(name="coco")

        vocabulary = spec.vocabulary()

        self.assertEqual(len(vocabulary), 80)
        self.assertEqual(vocabulary[0], "person")
        self.assertEqual(tuple(vocabulary), COCO_CLASSES)


if __name__ == "__main__":
    unittest.main()
