import pytest

from partitions.document import BlockKind
from partitions.errors import (MalformedBlock, DuplicatePart, NoScoreDefinition,
                               DuplicateScoreDefinition, InvalidPartName, ParseError)
from partitions.parser import parseScore, readScore

from conftest import MENUET


def test_menuet_blocks():
    doc = parseScore(MENUET)
    kinds = [block.kind for block in doc.blocks]
    assert kinds == [BlockKind.HEADER,     # \version
                     BlockKind.HEADER,     # \header
                     BlockKind.OPAQUE,     # #(set-global-staff-size 18)
                     BlockKind.HEADER,     # violinMusic = ...
                     BlockKind.HEADER,     # celloMusic = ...
                     BlockKind.PART,
                     BlockKind.PART,
                     BlockKind.SCORE]
    assert doc.partNames() == ['violin', 'cello']
    assert doc.scoreBlock().keyword == '\\score'
    assert len(doc.sharedBlocks()) == 5


def test_block_text_is_verbatim():
    doc = parseScore(MENUET)
    for block in doc.blocks:
        assert block.text in MENUET
    header = doc.blocks[1]
    assert header.text.startswith('\\header {')
    assert header.text.endswith('}')
    assert 'Menuet { in G }' in header.text
    violin = doc.parts()[0]
    assert violin.text.startswith('\\book {')
    assert '\\bookOutputSuffix "violin"' in violin.text


def test_block_lines():
    doc = parseScore(MENUET)
    assert doc.blocks[0].line == 1
    assert doc.blocks[1].line == 2
    assert doc.parts()[0].line == MENUET.splitlines().index('\\book {') + 1


def test_book_without_suffix_is_score():
    src = r'''
\version "2.24.0"
\book {
  \bookOutputSuffix "flute"
  \score { c'1 }
}
\book {
  \score { c'1 }
}
'''
    doc = parseScore(src)
    assert doc.partNames() == ['flute']
    assert doc.scoreBlock().keyword == '\\book'


def test_nested_suffix_is_ignored():
    src = r'''
\book {
  \bookpart {
    \bookOutputSuffix "nested"
    \score { c'1 }
  }
}
'''
    doc = parseScore(src)
    assert doc.partNames() == []
    assert doc.scoreBlock().kind is BlockKind.SCORE


def test_delimiters_within_strings_and_comments():
    src = r'''
\header {
  title = "a { b"   % not a { brace
  %{ block comment }
     spanning lines %}
}
#(define closer "}")
music = { c'4 d' }
\score { \music }
'''
    doc = parseScore(src)
    assert [b.kind for b in doc.blocks] == [BlockKind.HEADER, BlockKind.OPAQUE,
                                            BlockKind.HEADER, BlockKind.SCORE]
    assert doc.blocks[1].text == '#(define closer "}")'


def test_assignment_spanning_lines():
    src = 'music =\n  \\relative c\' {\n  c4 d\n}\n\\score { \\music }\n'
    doc = parseScore(src)
    assert len(doc.blocks) == 2
    assert doc.blocks[0].kind is BlockKind.HEADER
    assert doc.blocks[0].text.endswith('}')


@pytest.mark.parametrize('assignment', [
    "melody = \\relative c''\n{\n  c4 d e f\n}",
    "melody = \\transpose c d\n\\relative c'\n{ c1 }",
    "drums = \\drummode\n{ bd4 sn bd sn }",
    "upper = \\new Staff \\with {\n  instrumentName = \"V\"\n}\n{ c1 }",
    "melody =\n\\relative c'' {\n  c1\n}",
])
def test_music_starting_on_next_line(assignment):
    doc = parseScore(assignment + "\n\\score { \\melody }\n")
    assert [b.kind for b in doc.blocks] == [BlockKind.HEADER, BlockKind.SCORE]
    assert doc.blocks[0].text == assignment


def test_line_break_ends_complete_assignment():
    src = "tempoMark = 120\nmelody = \\relative c'' { c1 }\n{ d1 }\n\\score { \\melody }\n"
    doc = parseScore(src)
    assert [b.text for b in doc.blocks[:3]] == ["tempoMark = 120",
                                                "melody = \\relative c'' { c1 }",
                                                "{ d1 }"]
    assert doc.blocks[2].kind is BlockKind.OPAQUE


def test_opaque_blocks():
    src = r'''
\markup { \bold "Intro" }
\pointAndClickOff
\score { c'1 }
'''
    doc = parseScore(src)
    assert [b.kind for b in doc.blocks] == [BlockKind.OPAQUE, BlockKind.OPAQUE, BlockKind.SCORE]
    assert doc.blocks[1].text == '\\pointAndClickOff'


@pytest.mark.parametrize('src, line', [
    ('\\score { c\'1 }\n\\book {\n  \\bookOutputSuffix "violin"\n  \\score { c1 }\n', 2),
    ('\\header {\n  title = "x"\n\n\\score { c1 }\n', 1),
    ('\\score { << c1 }\n', 1),
])
def test_malformed_block(src, line):
    with pytest.raises(MalformedBlock) as excinfo:
        parseScore(src)
    assert excinfo.value.line == line
    assert str(excinfo.value).startswith(f'line {line}:')


@pytest.mark.parametrize('src', [
    '}\n\\score { c1 }\n',
    '\\header { title = "unterminated }\n\\score { c1 }\n',
    '%{ never closed\n\\score { c1 }\n',
    '#(define x (list 1 2)\n\\score { c1 }\n',
    '\\version 2.24\n\\score { c1 }\n',
])
def test_malformed_source(src):
    with pytest.raises(MalformedBlock):
        parseScore(src)


def test_duplicate_part():
    src = MENUET.replace('\\bookOutputSuffix "cello"', '\\bookOutputSuffix "violin"')
    with pytest.raises(DuplicatePart) as excinfo:
        parseScore(src)
    assert excinfo.value.name == 'violin'
    assert isinstance(excinfo.value, ParseError)


def test_no_score_definition():
    src = MENUET[:MENUET.rindex('\\score {')]
    with pytest.raises(NoScoreDefinition):
        parseScore(src)


def test_duplicate_score_definition():
    with pytest.raises(DuplicateScoreDefinition):
        parseScore(MENUET + "\n\\score { c1 }\n")


@pytest.mark.parametrize('name', ['', 'score', 'first/second', ' padded', '..',
                                  'score-page1', 'violin-page12'])
def test_invalid_part_name(name):
    src = f'\\book {{\n  \\bookOutputSuffix "{name}"\n  \\score {{ c1 }}\n}}\n\\score {{ c1 }}\n'
    with pytest.raises(InvalidPartName):
        parseScore(src)


@pytest.mark.parametrize('name', ['violin', 'Violin 1', 'clarinette-sib', 'sax_alto', 'cor.2',
                                  'violin-pages', 'page1'])
def test_valid_part_name(name):
    src = f'\\book {{\n  \\bookOutputSuffix "{name}"\n  \\score {{ c1 }}\n}}\n\\score {{ c1 }}\n'
    assert parseScore(src).partNames() == [name]


def test_read_score(menuetPath):
    doc = readScore(str(menuetPath))
    assert doc.source == str(menuetPath)
    assert doc.partNames() == ['violin', 'cello']


def test_read_score_latin1(tmp_path):
    path = tmp_path / 'latin1.ly'
    src = MENUET.replace('J. S. Bach', 'Jean-Baptiste Lully, arr. Hélène Béranger')
    path.write_bytes(src.encode('latin-1'))
    doc = readScore(str(path))
    assert doc.partNames() == ['violin', 'cello']
