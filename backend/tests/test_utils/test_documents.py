"""Tests for CPF/CNPJ and phone validation."""

import pytest

from rxautos.utils.documents import (
    format_document,
    only_digits,
    validate_cnpj,
    validate_cpf,
    validate_document,
    validate_phone,
)


class TestCpf:
    @pytest.mark.parametrize("cpf", ["52998224725", "529.982.247-25", "111.444.777-35"])
    def test_valid(self, cpf):
        assert validate_cpf(cpf)

    @pytest.mark.parametrize("cpf", ["52998224724", "11111111111", "5299822472", "", "abc"])
    def test_invalid(self, cpf):
        assert not validate_cpf(cpf)


class TestCnpj:
    @pytest.mark.parametrize("cnpj", ["11222333000181", "11.222.333/0001-81"])
    def test_valid(self, cnpj):
        assert validate_cnpj(cnpj)

    @pytest.mark.parametrize("cnpj", ["11222333000182", "00000000000000", "1122233300018"])
    def test_invalid(self, cnpj):
        assert not validate_cnpj(cnpj)


class TestValidateDocument:
    def test_detects_type(self):
        assert validate_document("529.982.247-25") == (True, "cpf")
        assert validate_document("11.222.333/0001-81") == (True, "cnpj")
        assert validate_document("52998224724") == (False, "cpf")

    def test_unknown_length(self):
        assert validate_document("12345") == (False, None)
        assert validate_document("") == (False, None)


class TestFormatting:
    def test_only_digits(self):
        assert only_digits("+55 (11) 98765-4321") == "5511987654321"
        assert only_digits(None) == ""

    def test_format(self):
        assert format_document("52998224725") == "529.982.247-25"
        assert format_document("11222333000181") == "11.222.333/0001-81"
        assert format_document("123") == "123"


class TestPhone:
    @pytest.mark.parametrize("phone", ["11987654321", "(11) 98765-4321", "+55 11 98765-4321", "1134567890"])
    def test_valid(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize("phone", ["", "987654321", "119876543210", "55 11 9876-5"])
    def test_invalid(self, phone):
        assert not validate_phone(phone)
