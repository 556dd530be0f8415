"""
CLI tests: run ramsim.main() against source files written to tmp_path.
"""

import io

import pytest

import ramsim

ADD_PROGRAM = "READ 1\nREAD 2\nLOAD 1\nADD 2\nSTORE 3\nWRITE 3\nHALT\n"


@pytest.fixture
def program(tmp_path):
    def write(source: str, name: str = "prog.ram"):
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return str(path)
    return write


@pytest.fixture
def numbers(tmp_path):
    path = tmp_path / "input.txt"
    path.write_text("20\n22\n", encoding="utf-8")
    return str(path)


class TestRun:
    def test_input_file(self, program, numbers, capsys):
        rc = ramsim.main([program(ADD_PROGRAM), "--input", numbers])
        assert rc == ramsim.EXIT_OK
        assert capsys.readouterr().out == "42\n"

    def test_stdin(self, program, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("1\n2\n"))
        rc = ramsim.main([program(ADD_PROGRAM)])
        assert rc == ramsim.EXIT_OK
        assert capsys.readouterr().out == "3\n"

    def test_registers(self, program, numbers, capsys):
        ramsim.main([program(ADD_PROGRAM), "-i", numbers, "--registers"])
        out = capsys.readouterr().out.splitlines()
        assert out == ["42", "r0=42 r1=20 r2=22 r3=42"]

    def test_trace(self, program, capsys):
        rc = ramsim.main([program("LOAD =5\nWRITE 0\nHALT"), "--trace"])
        assert rc == ramsim.EXIT_OK
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "Executed:    0: LOAD  =5"
        assert out[1] == "5"
        assert out[2] == "Executed:    1: WRITE 0"
        assert out[3] == "Executed:    2: HALT"

    def test_unlimited_steps(self, program, capsys):
        rc = ramsim.main([program("LOAD =1\nHALT"), "--max-steps", "0"])
        assert rc == ramsim.EXIT_OK


class TestDebugOutput:
    def test_listing(self, program, capsys):
        rc = ramsim.main([program("JUMP end\nWRITE =1\nend: HALT"), "--listing"])
        assert rc == ramsim.EXIT_OK
        out = capsys.readouterr().out
        assert "JUMP  =2" in out
        assert "Labels:" in out

    def test_listing_does_not_run(self, program, capsys):
        ramsim.main([program("WRITE =7\nHALT"), "--listing"])
        assert "7\n" not in capsys.readouterr().out.splitlines()

    def test_tokens(self, program, capsys):
        rc = ramsim.main([program("HALT ; done"), "--tokens"])
        assert rc == ramsim.EXIT_OK
        out = capsys.readouterr().out
        assert "Token(MNEMONIC, 'HALT', L1:1)" in out
        assert "COMMENT" in out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            ramsim.main(["--version"])
        assert exc.value.code == 0
        assert ramsim.__version__ in capsys.readouterr().out


class TestExitCodes:
    def test_missing_file(self, tmp_path, capsys):
        rc = ramsim.main([str(tmp_path / "nope.ram")])
        assert rc == ramsim.EXIT_ERROR
        assert "File not found" in capsys.readouterr().err

    def test_assembler_error(self, program, capsys):
        rc = ramsim.main([program("HALT\nFOO 1")])
        assert rc == ramsim.EXIT_ERROR
        err = capsys.readouterr().err
        assert "Assembler error: Line 2:" in err
        assert "FOO 1" in err

    def test_runtime_error(self, program, capsys):
        rc = ramsim.main([program("LOAD =1\nDIV =0")])
        assert rc == ramsim.EXIT_ERROR
        assert "Runtime error: Instruction 1:" in capsys.readouterr().err

    def test_output_before_runtime_error_is_kept(self, program, capsys):
        rc = ramsim.main([program("WRITE =3\nSTORE =1")])
        assert rc == ramsim.EXIT_ERROR
        assert capsys.readouterr().out == "3\n"

    def test_timeout(self, program, capsys):
        rc = ramsim.main([program("loop: JUMP loop"), "--max-steps", "50"])
        assert rc == ramsim.EXIT_TIMEOUT
        assert "step limit of 50" in capsys.readouterr().err

    def test_trace_timeout(self, program, capsys):
        rc = ramsim.main([program("loop: JUMP loop"), "--max-steps", "3", "--trace"])
        assert rc == ramsim.EXIT_TIMEOUT
        assert capsys.readouterr().out.count("Executed:") == 3

    def test_budget_ending_on_last_instruction(self, program, capsys):
        source = program("LOAD =1\nWRITE 0")
        assert ramsim.main([source, "--max-steps", "2"]) == ramsim.EXIT_OK
        assert ramsim.main([source, "--max-steps", "2", "--trace"]) == ramsim.EXIT_OK
        assert "step limit" not in capsys.readouterr().err

    def test_undecodable_input_file(self, program, tmp_path, capsys):
        path = tmp_path / "bad.txt"
        path.write_bytes(b"\xff\xfe5\n")
        rc = ramsim.main([program("READ 1\nHALT"), "--input", str(path)])
        assert rc == ramsim.EXIT_ERROR
        assert "Runtime error:" in capsys.readouterr().err

    def test_missing_input_file(self, program, tmp_path, capsys):
        rc = ramsim.main([program("HALT"), "--input", str(tmp_path / "none.txt")])
        assert rc == ramsim.EXIT_ERROR
