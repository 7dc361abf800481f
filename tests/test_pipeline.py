import threading

import pytest

from hybrid_cipher import (
    PIPELINE_ORDER,
    STAGE_REGISTRY,
    InvalidBlockSize,
    InvalidKeyword,
    InvalidLabel,
    MalformedCiphertext,
    ParameterError,
    PipelineParameters,
    UnsupportedCharacter,
    build_stages,
    decrypt,
    encrypt,
    format_substitution_table,
    format_transposition_table,
    GridSubstitution,
    split_padding,
)

HELLO_PARAMS = PipelineParameters(shift=3, block_size=4, label="ADFGVX", keyword="KEY")
HELLO_CIPHER = "FDVFDDFFFDFVXFFDGXFAX"


def test_registry_holds_every_stage():
    assert set(PIPELINE_ORDER) == set(STAGE_REGISTRY)


def test_build_stages_in_encryption_order():
    stages = build_stages(HELLO_PARAMS)
    assert [stage.name for stage in stages] == list(PIPELINE_ORDER)
    assert stages[0].shift == 3
    assert stages[1].block_size == 4
    assert stages[2].label == "ADFGVX"
    assert stages[3].keyword == "KEY"


def test_encrypt_is_deterministic():
    assert encrypt("HELLOWORLD", HELLO_PARAMS) == HELLO_CIPHER
    assert encrypt("HELLOWORLD", HELLO_PARAMS) == encrypt("HELLOWORLD", HELLO_PARAMS)


def test_decrypt_keeps_trailing_padding():
    assert decrypt(HELLO_CIPHER, HELLO_PARAMS) == "helloworldX"


def test_round_trip_without_padding():
    params = PipelineParameters(shift=-5, block_size=3, label="ABCDEF", keyword="ZEBRA")
    # 10 symbols -> 20 label characters -> exactly 4 rows of 5
    text = "attack2day"
    assert decrypt(encrypt(text, params), params) == text


def test_round_trip_when_filler_is_not_a_label_character():
    params = PipelineParameters(shift=1, block_size=2, label="ABCDEF", keyword="KEYS")
    cipher_text = encrypt("abc", params)
    assert cipher_text == "CDAABXAX"
    assert decrypt(cipher_text, params) == "abcXX"


def test_trace_reports_each_stage():
    seen = []
    encrypt("HELLOWORLD", HELLO_PARAMS, trace=lambda name, text: seen.append((name, text)))
    assert seen == [
        ("shift", "KHOORZRUOG"),
        ("reverse", "OOHKURZRGO"),
        ("substitute", "FFFFDDDVGFFXVDFXDAFF"),
        ("transpose", HELLO_CIPHER),
    ]


def test_decrypt_trace_runs_in_reverse_order():
    seen = []
    decrypt(HELLO_CIPHER, HELLO_PARAMS, trace=lambda name, text: seen.append(name))
    assert seen == ["transpose", "substitute", "reverse", "shift"]


def test_encrypt_rejects_space():
    with pytest.raises(UnsupportedCharacter):
        encrypt("HELLO WORLD", HELLO_PARAMS)


def test_decrypt_rejects_foreign_characters():
    with pytest.raises(MalformedCiphertext):
        decrypt("QQQQQQ", HELLO_PARAMS)


def test_decrypt_rejects_empty_ciphertext():
    with pytest.raises(MalformedCiphertext):
        decrypt("", HELLO_PARAMS)


@pytest.mark.parametrize("params, error", [
    (PipelineParameters(3, 0, "ADFGVX", "KEY"), InvalidBlockSize),
    (PipelineParameters(3, 4, "ADFG", "KEY"), InvalidLabel),
    (PipelineParameters(3, 4, "AAFGVX", "KEY"), InvalidLabel),
    (PipelineParameters(3, 4, "ADFGVX", "K"), InvalidKeyword),
    (PipelineParameters("3", 4, "ADFGVX", "KEY"), ParameterError),
])
def test_parameters_validated_before_running(params, error):
    with pytest.raises(error):
        encrypt("abc", params)
    with pytest.raises(error):
        decrypt("AAAA", params)


def test_split_padding():
    assert split_padding("ADFGX", "ADFGVX") == ("ADFG", "X")
    assert split_padding("ADFG", "ADFGVX") == ("ADFG", "")
    assert split_padding("ABCDXX", "ABCDEF") == ("ABCD", "XX")
    # an even run of filler is indistinguishable from the digraph for "9"
    assert split_padding("ADFGXX", "ADFGVX") == ("ADFGXX", "")


def test_even_filler_decodes_as_nine_and_is_reordered_by_block_reversal():
    # 20 label characters in 11 columns leave two filler cells, which read
    # back as the digraph "XX" = "9" before block reversal moves it
    params = PipelineParameters(shift=3, block_size=4, label="ADFGVX", keyword="ABCDEFGHIJK")
    assert decrypt(encrypt("abcdefghij", params), params) == "abcdefgh9ij"

    params = PipelineParameters(shift=3, block_size=4, label="ADFGVX", keyword="KEY")
    assert decrypt(encrypt("ab", params), params) == "9ab"


def test_concurrent_calls_do_not_interfere():
    results = {}

    def worker(shift):
        params = PipelineParameters(shift, 2, "ADFGVX", "CIPHER")
        results[shift] = decrypt(encrypt("abcdef", params), params)

    threads = [threading.Thread(target=worker, args=(shift,)) for shift in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert all(value == "abcdef" for value in results.values())


def test_format_substitution_table():
    table = format_substitution_table(GridSubstitution.build_grid(), "ADFGVX").splitlines()
    assert table[0] == "Substitution Table:"
    assert table[1] == "    A D F G V X"
    assert table[2] == "  +" + "-" * 20
    assert table[3] == "A | a b c d e f"
    assert table[-1] == "X | 4 5 6 7 8 9"


def test_format_transposition_table():
    table = format_transposition_table("KEY", "abcd").splitlines()
    assert table == [
        "Transposition Table:",
        "  K  E  Y",
        "---------",
        "  a  b  c",
        "  d  X  X",
    ]
