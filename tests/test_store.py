"""
Tests for loading and atomically saving record files.
"""

import os

import pytest

import pixframe.store as store_module
from pixframe.errors import EncodeError, ReplaceFailed, StoreIOError
from pixframe.models import CUSTOMER, PROJECT
from pixframe.table import RecordTable

from tests.helpers import make_customer, make_project

CUSTOMER_HEADER = 'CustomerNumber,FirstName,LastName,Company,Email,Phone,Street,HouseNumber,ZipCode,City,VatId,FolderPath'
LEGACY_CUSTOMER_HEADER = 'CustomerNumber,FirstName,LastName,Company,Email,Phone,Street,HouseNumber,ZipCode,City,VatId'


def write_raw(path, data: bytes):
    os.makedirs(path.parent, exist_ok=True)
    path.write_bytes(data)


class TestLoad:
    def test_missing_file_is_empty_table(self, customer_store):
        table = customer_store.load()
        assert len(table) == 0
        assert not customer_store.exists()

    def test_ensure_exists_writes_header_only(self, customer_store):
        assert customer_store.ensure_exists() is True
        assert customer_store.path.read_text(encoding='utf-8') == CUSTOMER_HEADER + '\n'
        assert customer_store.ensure_exists() is False

    def test_malformed_row_is_skipped_not_fatal(self, customer_store):
        rows = [
            CUSTOMER_HEADER,
            '1000,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,,',
            '1001,broken',
            '1002,Bea,Kern,,b@b.de,2,Weg,2,22222,Bonn,,',
            '1003,Cem,Arslan,,c@b.de,3,Weg,3,33333,Bonn,,',
        ]
        write_raw(customer_store.path, ('\n'.join(rows) + '\n').encode('utf-8'))
        table, errors = customer_store.load_with_errors()
        assert table.identities() == [1000, 1002, 1003]
        assert len(errors) == 1
        assert errors[0].line_number == 3

    def test_stray_quote_inside_field_is_literal(self, customer_store):
        rows = [
            CUSTOMER_HEADER,
            '1000,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,,',
            '1001,Bo"b,Smith,,b@b.de,2,Weg,2,22222,Bonn,,',
            '1002,Bea,Kern,,b@b.de,2,Weg,2,22222,Bonn,,',
            '1003,Cem,Arslan,,c@b.de,3,Weg,3,33333,Bonn,,',
            '1004,Dana,Ross,,d@b.de,4,Weg,4,44444,Bonn,,',
        ]
        write_raw(customer_store.path, ('\n'.join(rows) + '\n').encode('utf-8'))
        table, errors = customer_store.load_with_errors()
        assert table.identities() == [1000, 1001, 1002, 1003, 1004]
        assert table.get(1001).first_name == 'Bo"b'
        assert errors == []

    def test_unterminated_quote_costs_only_its_row(self, customer_store):
        rows = [
            CUSTOMER_HEADER,
            '1000,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,,',
            '1001,"Bob,Smith,,b@b.de,2,Weg,2,22222,Bonn,,',
            '1002,Bea,Kern,,b@b.de,2,Weg,2,22222,Bonn,,',
            '1003,Cem,Arslan,,c@b.de,3,Weg,3,33333,Bonn,,',
        ]
        write_raw(customer_store.path, ('\n'.join(rows) + '\n').encode('utf-8'))
        table, errors = customer_store.load_with_errors()
        assert table.identities() == [1000, 1002, 1003]
        assert [e.line_number for e in errors] == [3]
        assert 'unterminated' in str(errors[0])

    def test_duplicate_identity_keeps_first(self, customer_store):
        rows = [
            CUSTOMER_HEADER,
            '1000,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,,',
            '1000,Bea,Kern,,b@b.de,2,Weg,2,22222,Bonn,,',
        ]
        write_raw(customer_store.path, ('\n'.join(rows) + '\n').encode('utf-8'))
        table, errors = customer_store.load_with_errors()
        assert table.get(1000).first_name == 'Ana'
        assert 'duplicate' in str(errors[0])

    def test_bom_and_crlf_are_tolerated(self, customer_store):
        rows = [LEGACY_CUSTOMER_HEADER, '1001,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,DE1']
        write_raw(customer_store.path, ('\ufeff' + '\r\n'.join(rows) + '\r\n').encode('utf-8'))
        table = customer_store.load()
        customer = table.get(1001)
        assert customer.vat_id == 'DE1'
        assert customer.folder_path == ''

    def test_invalid_utf8_costs_one_row(self, customer_store):
        good = '1000,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,,'.encode('utf-8')
        bad = b'1001,\xff\xfe,Lima,,a@b.de,1,Weg,1,11111,Bonn,,'
        write_raw(customer_store.path, CUSTOMER_HEADER.encode('utf-8') + b'\n' + good + b'\n' + bad + b'\n')
        table, errors = customer_store.load_with_errors()
        assert table.identities() == [1000]
        assert len(errors) == 1

    def test_embedded_newline_survives_save_and_load(self, customer_store):
        table = RecordTable(CUSTOMER, [make_customer(1000, company='Line one\nLine two, GmbH')])
        customer_store.save(table)
        loaded = customer_store.load()
        assert loaded.get(1000).company == 'Line one\nLine two, GmbH'

    def test_unreadable_file_raises(self, customer_store, monkeypatch):
        customer_store.ensure_exists()

        def deny(*args, **kwargs):
            raise PermissionError('denied')

        monkeypatch.setattr(store_module, 'open', deny, raising=False)
        with pytest.raises(StoreIOError):
            customer_store.load()


class TestSave:
    def test_rows_are_written_in_identity_order(self, customer_store):
        table = RecordTable(CUSTOMER, [make_customer(1002), make_customer(1000)])
        customer_store.save(table)
        lines = customer_store.path.read_text(encoding='utf-8').splitlines()
        assert lines[0] == CUSTOMER_HEADER
        assert [line.split(',')[0] for line in lines[1:]] == ['1000', '1002']

    def test_legacy_file_is_upgraded_on_save(self, customer_store):
        rows = [LEGACY_CUSTOMER_HEADER, '1001,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,DE1']
        write_raw(customer_store.path, ('\n'.join(rows) + '\n').encode('utf-8'))
        customer_store.save(customer_store.load())
        lines = customer_store.path.read_text(encoding='utf-8').splitlines()
        assert lines[0] == CUSTOMER_HEADER
        assert lines[1] == '1001,Ana,Lima,,a@b.de,1,Weg,1,11111,Bonn,DE1,'

    def test_project_file_round_trip(self, project_store):
        table = RecordTable(PROJECT, [make_project(1), make_project(2, notes='a "quoted" note')])
        project_store.save(table)
        loaded = project_store.load()
        assert loaded.all() == table.all()

    def test_no_temp_file_left_after_success(self, customer_store):
        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000)]))
        assert not customer_store.temp_path.exists()


class TestAtomicity:
    def test_failed_replace_leaves_original_untouched(self, customer_store, monkeypatch):
        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000)]))
        before = customer_store.path.read_bytes()

        def broken_replace(src, dst):
            raise OSError('disk gone')

        monkeypatch.setattr(store_module.os, 'replace', broken_replace)
        with pytest.raises(ReplaceFailed):
            customer_store.save(RecordTable(CUSTOMER, [make_customer(1000), make_customer(1001)]))

        assert customer_store.path.read_bytes() == before
        assert not customer_store.temp_path.exists()

    def test_failed_temp_write_leaves_original_untouched(self, customer_store, monkeypatch):
        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000)]))
        before = customer_store.path.read_bytes()

        def broken_fsync(fd):
            raise OSError('no space left on device')

        monkeypatch.setattr(store_module.os, 'fsync', broken_fsync)
        with pytest.raises(StoreIOError):
            customer_store.save(RecordTable(CUSTOMER, [make_customer(1001)]))

        assert customer_store.path.read_bytes() == before
        assert not customer_store.temp_path.exists()

    def test_crash_between_temp_write_and_rename(self, customer_store):
        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000)]))
        before = customer_store.path.read_bytes()
        # a process that died after writing the temp file but before the rename
        customer_store.temp_path.write_text(CUSTOMER_HEADER + '\n1000,half', encoding='utf-8')

        assert customer_store.path.read_bytes() == before
        assert customer_store.load().identities() == [1000]

        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000), make_customer(1001)]))
        assert customer_store.load().identities() == [1000, 1001]
        assert not customer_store.temp_path.exists()

    def test_encode_error_writes_nothing(self, customer_store):
        customer_store.save(RecordTable(CUSTOMER, [make_customer(1000)]))
        before = customer_store.path.read_bytes()
        table = RecordTable(CUSTOMER, [make_customer(1000)])
        table.get(1000).city = 12345
        with pytest.raises(EncodeError):
            customer_store.save(table)
        assert customer_store.path.read_bytes() == before
        assert not customer_store.temp_path.exists()

    def test_saving_other_kind_is_refused(self, customer_store):
        with pytest.raises(EncodeError):
            customer_store.save(RecordTable(PROJECT))
