"""Tests for main.py CLI functionality."""

import json
from unittest.mock import patch

import pytest

from image_workflow.core.config import PipelineSettings
from image_workflow.factories import PipelineFactory
from image_workflow.main import create_parser, main
from image_workflow.testing.fakes import FakeLogger, create_test_image, setup_test_s3_environment


@pytest.fixture
def fake_s3():
    return setup_test_s3_environment("cli-bucket")


@pytest.fixture
def patched_factory(fake_s3, monkeypatch):
    monkeypatch.delenv("STATE_MACHINE_ARN", raising=False)

    def build(settings: PipelineSettings) -> PipelineFactory:
        return PipelineFactory(settings, s3_client=fake_s3, logger=FakeLogger())

    with patch("image_workflow.main.build_factory", side_effect=build):
        yield


def run_main(argv):
    with pytest.raises(SystemExit) as exit_info:
        main(argv)
    return exit_info.value.code


class TestMainCLI:
    def test_main_with_no_args_shows_help(self):
        with patch("argparse.ArgumentParser.print_help") as mock_help:
            assert run_main([]) == 1
            mock_help.assert_called_once()

    def test_main_version_command(self):
        with patch("builtins.print") as mock_print:
            assert run_main(["version"]) == 0
            mock_print.assert_any_call("Image Workflow CLI")
            mock_print.assert_any_call("Version 0.1.0")

    def test_parser_process_options(self):
        args = create_parser().parse_args(
            [
                "process",
                "--bucket",
                "b",
                "--key",
                "uploads/a.jpg",
                "--width",
                "640",
                "--ignore-aspect-ratio",
                "--adjustment",
                "-0.2",
            ]
        )
        assert (args.bucket, args.key, args.width, args.height) == ("b", "uploads/a.jpg", 640, None)
        assert args.ignore_aspect_ratio is True
        assert args.adjustment == -0.2

    def test_presign_command(self, patched_factory, capsys):
        code = run_main(
            [
                "presign",
                "--bucket",
                "cli-bucket",
                "--filename",
                "photo.jpg",
                "--content-type",
                "image/jpeg",
                "--file-size",
                "2048",
            ]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["key"].startswith("uploads/")
        assert output["key"].endswith("-photo.jpg")
        assert output["uploadUrl"].startswith("https://cli-bucket.s3.amazonaws.com/")

    def test_presign_command_rejects_bad_request(self, patched_factory, capsys):
        code = run_main(
            [
                "presign",
                "--bucket",
                "cli-bucket",
                "--filename",
                "doc.pdf",
                "--content-type",
                "application/pdf",
                "--file-size",
                "10",
            ]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert output["error"].startswith("Invalid content type.")

    def test_process_command_runs_workflow(self, patched_factory, fake_s3, capsys):
        fake_s3.get_bucket("cli-bucket").add_object(
            "uploads/1700000000000-abc123-big.jpg", create_test_image(400, 300)
        )

        code = run_main(
            ["process", "--bucket", "cli-bucket", "--key", "uploads/1700000000000-abc123-big.jpg", "--width", "200"]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["state"] == "SUCCEEDED"
        assert output["output"]["processedFiles"]["resized"] == (
            "processed/1700000000000-abc123-big-resized-200x150.jpg"
        )

    def test_handle_event_command(self, patched_factory, tmp_path, capsys):
        event_file = tmp_path / "event.json"
        event_file.write_text(
            json.dumps(
                {
                    "Records": [
                        {
                            "eventTime": "2024-01-01T00:00:00.000Z",
                            "s3": {
                                "bucket": {"name": "cli-bucket"},
                                "object": {"key": "uploads/1700000000000-abc123-photo1.jpg", "size": 10},
                            },
                        }
                    ]
                }
            )
        )

        code = run_main(["handle-event", str(event_file), "--bucket", "cli-bucket"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["started"] == 1
        assert output["results"][0]["outcome"] == "started"

    def test_missing_bucket_is_configuration_error(self, monkeypatch, capsys):
        monkeypatch.delenv("BUCKET_NAME", raising=False)

        code = run_main(["presign", "--filename", "a.jpg", "--content-type", "image/jpeg", "--file-size", "1"])

        assert code == 2
        assert "BUCKET_NAME" in capsys.readouterr().err
