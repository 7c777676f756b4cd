"""Tests for duplicate suppression and the dictionary word list"""
import httpx
import pytest

from acars_processor.core.config import DictionaryConfig
from acars_processor.core.exceptions import ConfigError
from acars_processor.services.filters.dictionary import build_word_set, load_dictionary, longest_phrase
from acars_processor.services.filters.duplicate import DuplicateCheck, hamming_similarity


class TestHammingSimilarity:
    """Tests for the similarity score"""

    def test_identical(self):
        assert hamming_similarity("POS REPORT 42", "POS REPORT 42") == 1.0

    def test_one_difference(self):
        """One mismatch in ten characters is 0.9"""
        assert hamming_similarity("ABCDEFGHIJ", "ABCDEFGHIX") == pytest.approx(0.9)

    def test_length_difference_counts(self):
        """Extra characters of the longer string are mismatches"""
        assert hamming_similarity("ABCD", "ABCDEFGH") == pytest.approx(0.5)

    def test_symmetric(self):
        """Order of arguments does not matter"""
        assert hamming_similarity("ABC", "ABXYZ") == hamming_similarity("ABXYZ", "ABC")

    def test_both_empty(self):
        assert hamming_similarity("", "") == 1.0


class TestDuplicateCheck:
    """Tests for comparing against recent messages"""

    def test_identical_vetoed(self):
        """An identical recent message vetoes"""
        check = DuplicateCheck(similarity=0.9)
        veto, reason = check.find_duplicate("POS REPORT 42", ["OTHER", "POS REPORT 42"])
        assert veto
        assert "1.00 similar" in reason

    def test_distinct_passes(self):
        """Dissimilar messages pass"""
        check = DuplicateCheck(similarity=0.9)
        assert check.find_duplicate("POS REPORT 42", ["WX REQUEST KSEA"]) == (False, "")

    def test_zero_similarity_never_vetoes(self):
        """A threshold of 0 disables the check"""
        check = DuplicateCheck(similarity=0)
        veto, _ = check.find_duplicate("POS REPORT 42", ["POS REPORT 42"])
        assert not veto

    def test_longer_message_kept(self):
        """A longer new message passes when the exception is enabled"""
        check = DuplicateCheck(similarity=0.5, dont_filter_if_longer=True)
        veto, _ = check.find_duplicate("POS REPORT 42 MORE", ["POS REPORT 42"])
        assert not veto

    def test_longer_message_vetoed_without_exception(self):
        """Without the exception a longer similar message is vetoed"""
        check = DuplicateCheck(similarity=0.5, dont_filter_if_longer=False)
        veto, _ = check.find_duplicate("POS REPORT 42 MORE", ["POS REPORT 42"])
        assert veto

    def test_shorter_message_vetoed(self):
        """The longer exception only applies to the new message"""
        check = DuplicateCheck(similarity=0.5, dont_filter_if_longer=True)
        veto, _ = check.find_duplicate("POS REPORT 42", ["POS REPORT 42 MORE"])
        assert veto

    def test_blank_text_vetoed(self):
        """Blank text is vetoed"""
        check = DuplicateCheck(similarity=0.9)
        assert check.find_duplicate("   ", []) == (True, "message text was empty")

    def test_look_behind_limit(self):
        """Only the newest maximum_look_behind messages are compared"""
        check = DuplicateCheck(similarity=0.9, maximum_look_behind=1)
        veto, _ = check.find_duplicate("POS REPORT 42", ["NEWEST", "POS REPORT 42"])
        assert not veto


class TestDictionary:
    """Tests for the English word list"""

    def test_build_word_set(self):
        """Words are lowercased, blanks and words with digits are skipped"""
        assert build_word_set(["Hello", "", "  world ", "b52"]) == frozenset({"hello", "world"})

    def test_longest_phrase(self):
        """Longest run of consecutive words, split on spaces, commas and periods"""
        words = frozenset({"the", "lav", "is", "inop", "please", "check"})
        length, phrase = longest_phrase("THE LAV IS INOP. XYZ123 PLEASE,CHECK", words)
        assert length == 4
        assert phrase == "THE LAV IS INOP"

    def test_no_words(self):
        assert longest_phrase("QWX 123", frozenset({"the"})) == (0, "")

    @pytest.mark.asyncio
    async def test_load_from_path(self, tmp_path):
        """A local word list is read from disk"""
        path = tmp_path / "words.txt"
        path.write_text("alpha\nbravo\n")
        words = await load_dictionary(DictionaryConfig(path=str(path)))
        assert words == frozenset({"alpha", "bravo"})

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path):
        """An unreadable word list is a configuration error"""
        with pytest.raises(ConfigError):
            await load_dictionary(DictionaryConfig(path=str(tmp_path / "missing.txt")))

    @pytest.mark.asyncio
    async def test_load_from_url(self, mock_http):
        """Without a path the list is downloaded"""
        client, transport = mock_http(lambda request: httpx.Response(200, text="Charlie\ndelta\n"))
        words = await load_dictionary(DictionaryConfig(url="http://words.test/words.txt"), client=client)

        assert words == frozenset({"charlie", "delta"})
        assert str(transport.requests[0].url) == "http://words.test/words.txt"

    @pytest.mark.asyncio
    async def test_download_failure(self, mock_http):
        """A failed download is a configuration error"""
        client, _ = mock_http(lambda request: httpx.Response(404))
        with pytest.raises(ConfigError):
            await load_dictionary(DictionaryConfig(url="http://words.test/words.txt"), client=client)
