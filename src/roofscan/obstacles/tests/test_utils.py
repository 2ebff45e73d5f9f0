import pytest

from roofscan.obstacles import utils


def test_with_api_key_separators():
    assert utils.with_api_key('https://x.test/dsm', 'k') == 'https://x.test/dsm?key=k'
    assert utils.with_api_key('https://x.test/dsm?id=7', 'k') == 'https://x.test/dsm?id=7&key=k'


def test_with_api_key_keeps_existing_key():
    assert utils.with_api_key('https://x.test/dsm?key=old', 'new') == 'https://x.test/dsm?key=old'
    assert utils.with_api_key('https://x.test/dsm', None) == 'https://x.test/dsm'


def test_vertex_centroid():
    assert utils.vertex_centroid([(0, 0), (4, 0), (4, 2), (0, 2)]) == (2.0, 1.0)
    with pytest.raises(ValueError):
        utils.vertex_centroid([])


def test_log_stage_failure_fallback(capfd):
    # Force logger.warning to raise so the stderr fallback is used
    class BadLogger:
        def warning(self, *args, **kwargs):
            raise RuntimeError('logger failed')

    old_logger = utils.logger
    try:
        utils.logger = BadLogger()
        utils.log_stage_failure('Flux analysis', ValueError('boom'), url='https://x.test')
        captured = capfd.readouterr()
        assert 'LOGGING FAILURE' in captured.err
    finally:
        utils.logger = old_logger


def test_log_stage_failure_logs_warning(caplog):
    utils.log_stage_failure('Classification', ValueError('bad reply'), constraints=3)
    assert 'Classification failed: bad reply' in caplog.text
    assert 'constraints=3' in caplog.text
