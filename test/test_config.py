import pytest
import yaml

from partitions import config
from partitions.config import RunOptions, loadConfig, checkValue


def test_defaults(tmp_path):
    cfg = loadConfig(str(tmp_path / 'missing.yaml'), environ={})
    assert cfg == config.defaultdict


def test_user_config(userConfig):
    userConfig['jobs'] = 3
    cfg = loadConfig(environ={})
    assert cfg['jobs'] == 3
    cfg['jobs'] = 5
    assert userConfig['jobs'] == 3
    assert config.activeConfig() is userConfig


def test_load(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump({'jobs': 4, 'timeout': 120, 'fontDirs': ['/fonts/a'],
                                    'unknownKey': 1}))
    cfg = loadConfig(str(path), environ={})
    assert cfg['jobs'] == 4
    assert cfg['timeout'] == 120
    assert cfg['fontDirs'] == ['/fonts/a']
    assert 'unknownKey' not in cfg
    assert cfg['format'] == 'pdf'


def test_environ_overrides(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump({'jobs': 4, 'lilypondBinary': '/usr/bin/lilypond'}))
    environ = {'PARTITIONS_JOBS': '8',
               'PARTITIONS_LILYPOND': '/opt/lilypond/bin/lilypond',
               'PARTITIONS_FONTDIRS': '/fonts/a:/fonts/b'}
    cfg = loadConfig(str(path), environ=environ)
    assert cfg['jobs'] == 8
    assert cfg['lilypondBinary'] == '/opt/lilypond/bin/lilypond'
    assert cfg['fontDirs'] == ['/fonts/a', '/fonts/b']


@pytest.mark.parametrize('environ', [
    {'PARTITIONS_JOBS': 'many'},
    {'PARTITIONS_JOBS': '-2'},
])
def test_invalid_environ(tmp_path, environ):
    with pytest.raises(ValueError):
        loadConfig(str(tmp_path / 'missing.yaml'), environ=environ)


@pytest.mark.parametrize('content', [
    {'format': 'svg'},
    {'jobs': -1},
    {'jobs': 'four'},
    {'timeout': 0},
    {'resolution': 301},
    {'fontDirs': '/fonts/a'},
])
def test_invalid_values_use_default(tmp_path, content):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(dict(content, musicPath='partitions')))
    cfg = loadConfig(str(path), environ={})
    key = next(iter(content))
    assert cfg[key] == config.defaultdict[key]
    assert cfg['musicPath'] == 'partitions'


@pytest.mark.parametrize('key, value', [
    ('format', 'svg'),
    ('jobs', -1),
    ('timeout', 0),
    ('timeout', 'long'),
    ('fontDirs', '/fonts/a'),
])
def test_set_invalid_value(userConfig, key, value):
    with pytest.raises(ValueError):
        userConfig[key] = value
    assert userConfig[key] == config.defaultdict[key]


def test_check_value():
    checkValue('format', 'png')
    checkValue('timeout', 10)
    checkValue('timeout', 0.5)
    with pytest.raises(ValueError):
        checkValue('resolution', 72)


def test_save_and_load(tmp_path, userConfig):
    userConfig['jobs'] = 2
    userConfig['fontDirs'] = ['/fonts/a']
    path = str(tmp_path / 'sub' / 'config.yaml')
    userConfig.save(path)
    with open(path) as f:
        saved = yaml.safe_load(f)
    assert saved['jobs'] == 2
    assert saved['fontDirs'] == ['/fonts/a']
    assert loadConfig(path, environ={}) == userConfig


def test_reset(userConfig):
    userConfig['format'] = 'png'
    userConfig.reset()
    assert userConfig == config.defaultdict


def test_run_options():
    cfg = loadConfig(environ={}).clone(updates={'jobs': 4, 'fontDirs': ['/fonts/a']})
    options = RunOptions.fromConfig(cfg, jobs=None, timeout=10, fmt='png')
    assert options.jobs == 4
    assert options.timeout == 10
    assert options.fmt == 'png'
    assert options.fontDirs == ['/fonts/a']
    with pytest.raises(ValueError):
        RunOptions(fmt='svg')
    with pytest.raises(ValueError):
        RunOptions(timeout=-1)
