import hashlib
from dataclasses import dataclass

import pytest

from blockforge.merkle import Tree


@dataclass(frozen=True)
class Data:
    x: str

    def hash(self) -> bytes:
        return hashlib.sha256(self.x.encode()).digest()

    def equals(self, other) -> bool:
        return self.x == other.x


NOT_IN_CONTENTS = Data("NotInTestTable")

TABLE = [
    (
        [Data("Hello"), Data("Hi"), Data("Hey"), Data("Hola")],
        bytes([95, 48, 204, 128, 19, 59, 147, 148, 21, 110, 36, 178, 51, 240, 196, 190,
               50, 178, 78, 68, 187, 51, 129, 240, 44, 123, 165, 38, 25, 208, 254, 188]),
    ),
    (
        [Data("Hello"), Data("Hi"), Data("Hey")],
        bytes([189, 214, 55, 197, 35, 237, 92, 14, 171, 121, 43, 152, 109, 177, 136, 80,
               194, 57, 162, 226, 56, 2, 179, 106, 255, 38, 187, 104, 251, 63, 224, 8]),
    ),
    (
        [Data("Hello"), Data("Hi"), Data("Hey"), Data("Greetings"), Data("Hola")],
        bytes([46, 216, 115, 174, 13, 210, 55, 39, 119, 197, 122, 104, 93, 144, 112, 131,
               202, 151, 41, 14, 80, 143, 21, 71, 140, 169, 139, 173, 50, 37, 235, 188]),
    ),
    (
        [Data(s) for s in ["123", "234", "345", "456", "1123", "2234", "3345", "4456"]],
        bytes([30, 76, 61, 40, 106, 173, 169, 183, 149, 2, 157, 246, 162, 218, 4, 70,
               153, 148, 62, 162, 90, 24, 173, 250, 41, 149, 173, 121, 141, 187, 146, 43]),
    ),
    (
        [Data(s) for s in ["123", "234", "345", "456", "1123", "2234", "3345", "4456", "5567"]],
        bytes([143, 37, 161, 192, 69, 241, 248, 56, 169, 87, 79, 145, 37, 155, 51, 159,
               209, 129, 164, 140, 130, 167, 16, 182, 133, 205, 126, 55, 237, 188, 89, 236]),
    ),
]


@pytest.mark.parametrize("data, expected", TABLE)
def test_new_tree_with_default(data, expected):
    tree = Tree(data)
    assert tree.merkle_root == expected


@pytest.mark.parametrize("data, expected", TABLE)
def test_new_tree_with_hash_strategy(data, expected):
    tree = Tree(data, hashlib.sha256)
    assert tree.merkle_root == expected
    assert tree.root_hex() == "0x" + expected.hex()


@pytest.mark.parametrize("data, expected", TABLE)
def test_rebuild_tree(data, expected):
    tree = Tree(data, hashlib.sha256)
    tree.rebuild()
    assert tree.merkle_root == expected


@pytest.mark.parametrize("index", range(len(TABLE) - 1))
def test_rebuild_tree_with(index):
    tree = Tree(TABLE[index][0], hashlib.sha256)
    tree.generate(TABLE[index + 1][0])
    assert tree.merkle_root == TABLE[index + 1][1]


@pytest.mark.parametrize("data, expected", TABLE)
def test_verify_tree(data, expected):
    tree = Tree(data, hashlib.sha256)
    tree.verify()
    assert tree.merkle_root == expected
    tree.root.hash = bytes([1])
    tree.merkle_root = bytes([1])
    with pytest.raises(ValueError):
        tree.verify()


@pytest.mark.parametrize("data, expected", TABLE)
def test_verify_data(data, expected):
    tree = Tree(data, hashlib.sha256)
    for value in data[:3]:
        tree.verify_data(value)
    tree.root.hash = bytes([1])
    tree.merkle_root = bytes([1])
    with pytest.raises(ValueError):
        tree.verify_data(data[0])
    tree.rebuild()
    assert tree.merkle_root == expected
    with pytest.raises(ValueError):
        tree.verify_data(NOT_IN_CONTENTS)


@pytest.mark.parametrize("data, expected", TABLE)
def test_string(data, expected):
    tree = Tree(data, hashlib.sha256)
    text = str(tree)
    assert text != ""
    assert len(text.splitlines()) == len(tree.leafs)


@pytest.mark.parametrize("data, expected", TABLE)
def test_merkle_path(data, expected):
    tree = Tree(data, hashlib.sha256)
    for j, value in enumerate(data):
        merkle_proof, order = tree.proof(value)
        current = tree.leafs[j].calculate_hash()
        for proof_hash, position in zip(merkle_proof, order):
            if position == 1:
                current = current + proof_hash
            else:
                current = proof_hash + current
            current = hashlib.sha256(current).digest()
        assert current == tree.merkle_root


def test_proof_missing_data_raises():
    tree = Tree(TABLE[0][0])
    with pytest.raises(ValueError):
        tree.proof(NOT_IN_CONTENTS)


def test_empty_tree_raises():
    with pytest.raises(ValueError):
        Tree([])


def test_values_drop_padding_duplicate():
    odd = TABLE[1][0]
    assert Tree(odd).values() == odd
    assert len(Tree(odd).leafs) == 4
    even = TABLE[0][0]
    assert Tree(even).values() == even


def test_other_hash_strategy_changes_root_length():
    tree = Tree(TABLE[0][0], hashlib.sha512)
    assert len(tree.merkle_root) == 64
    tree.verify_data(TABLE[0][0][2])