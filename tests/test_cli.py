"""
Tests for the scmint command line interface.
"""

import anndata as ad
import pytest
import yaml

from scmint.cli.main import build_parser, main
from scmint.integration import GLOBAL_KEY, MARKER_KEY


@pytest.fixture
def data_path(tmp_path):
    path = tmp_path / 'synthetic.h5ad'
    main(['generate', '-o', str(path), '--n-cells', '120', '--n-genes', '100', '--seed', '3'])
    return path


def test_generate(tmp_path, capsys):
    path = tmp_path / "generated.h5ad"
    main(['generate', '-o', str(path), '--n-cells', '60', '--n-genes', '80', '--seed', '1'])

    assert 'Saved synthetic data' in capsys.readouterr().out
    adata = ad.read_h5ad(path)
    assert adata.shape == (60, 80)


def test_list_models(capsys):
    main(['list-models'])
    out = capsys.readouterr().out
    assert 'splsda' in out
    assert 'mixomics' in out


def test_info(data_path, capsys):
    main(['info', '--data', str(data_path)])
    out = capsys.readouterr().out
    assert "Class column (auto-detected): 'mix'" in out
    assert "Batch column (auto-detected): 'batch'" in out
    assert "Cells per class and batch:" in out


def test_integrate(data_path, tmp_path, capsys):
    out_path = tmp_path / 'mint.h5ad'
    main([
        'integrate', '--data', str(data_path),
        '--ncomp', '2', '--keepx', '10,10',
        '-o', str(out_path),
    ])

    out = capsys.readouterr().out
    assert 'MINT RESULTS' in out

    adata = ad.read_h5ad(out_path)
    assert GLOBAL_KEY in adata.obsm
    assert adata.var[MARKER_KEY].sum() > 0


def test_integrate_with_tuning(data_path, tmp_path):
    out_path = tmp_path / 'mint.h5ad'
    main([
        'integrate', '--data', str(data_path),
        '--ncomp', '1', '--tune-keepx', '5,10',
        '-o', str(out_path),
    ])

    adata = ad.read_h5ad(out_path)
    assert adata.uns['mint']['keepX'][0] in (5, 10)


def test_integrate_failure_exits(data_path):
    with pytest.raises(SystemExit) as exc:
        main(['integrate', '--data', str(data_path), '--batch-key', 'protocol',
              '--ncomp', '1', '--keepx', '5'])
    assert exc.value.code == 1


def test_failed_rerun_on_integrated_output_exits(data_path, tmp_path):
    out_path = tmp_path / 'mint.h5ad'
    main(['integrate', '--data', str(data_path), '--ncomp', '1', '--keepx', '5',
          '-o', str(out_path)])
    assert GLOBAL_KEY in ad.read_h5ad(out_path).obsm

    # earlier embeddings in the file must not hide the failure
    with pytest.raises(SystemExit) as exc:
        main(['integrate', '--data', str(out_path), '--batch-key', 'protocol',
              '--ncomp', '1', '--keepx', '5'])
    assert exc.value.code == 1


def test_run_config_failure_writes_nothing(data_path, tmp_path):
    config = tmp_path / 'config.yaml'
    config.write_text(yaml.safe_dump({
        'data': str(data_path),
        'batch_key': 'protocol',
        'ncomp': 1,
        'keepX': [5],
    }))
    out_path = tmp_path / 'run.h5ad'

    with pytest.raises(SystemExit) as exc:
        main(['run', '--config', str(config), '-o', str(out_path)])

    assert exc.value.code == 1
    assert not out_path.exists()


def test_bad_keepx(data_path):
    with pytest.raises(SystemExit) as exc:
        main(['integrate', '--data', str(data_path), '--keepx', '10,ten'])
    assert 'comma-separated integers' in str(exc.value.code)


def test_run_config(data_path, tmp_path, capsys):
    config = tmp_path / 'config.yaml'
    config.write_text(yaml.safe_dump({
        'data': str(data_path),
        'ncomp': 2,
        'keepX': [8, 8],
    }))
    out_path = tmp_path / 'run.h5ad'

    main(['run', '--config', str(config), '-o', str(out_path)])

    assert out_path.exists()
    assert 'MINT RESULTS' in capsys.readouterr().out


def test_no_command():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1


def test_parser_defaults():
    args = build_parser().parse_args(['integrate', '--data', 'x.h5ad'])
    assert args.batch_key == 'batch'
    assert args.class_key == 'mix'
    assert args.ncomp == 3
    assert args.model == 'splsda'
