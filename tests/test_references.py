"""Tests for reference resolution."""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hyperref_pkg.errors import UnresolvedReference
from hyperref_pkg.references import ReferenceKind, ReferenceResolver, split_scheme
from hyperref_pkg.utils import file_hash, short_hash


@pytest.fixture
def tree(temp_dir):
    root = Path(temp_dir)
    src = root / 'src'
    assets = root / 'assets'
    (src / 'blog').mkdir(parents=True)
    (assets / 'img').mkdir(parents=True)
    for relpath in ('index.md', 'about.md', 'blog/index.md', 'blog/first.md'):
        (src / relpath).write_text("---\ntitle: x\n---\n", encoding='utf-8')
    (assets / 'img' / 'cat.png').write_bytes(b'not really a png')
    (assets / 'logo.svg').write_text('<svg xmlns="http://www.w3.org/2000/svg"/>', encoding='utf-8')
    (root / 'secret.md').write_text("---\ntitle: outside\n---\n", encoding='utf-8')
    resolver = ReferenceResolver(str(src), str(assets))
    return resolver, src, assets


class TestSplitScheme:
    def test_scheme_is_lowercased(self):
        assert split_scheme('PAGE:about') == ('page', 'about')

    def test_no_scheme(self):
        assert split_scheme('about.html') == (None, 'about.html')

    def test_noprocess_scheme(self):
        assert split_scheme('https-noprocess://x.org/a') == ('https-noprocess', '//x.org/a')


class TestPageReferences:
    """Test cases for page: and hyperref: links."""

    def test_relative_page(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('page:first', str(src / 'blog' / 'index.md'))

        assert ref.kind is ReferenceKind.PAGE
        assert ref.target == 'page:blog/first.md'
        assert ref.href == '/blog/first.html'
        assert ref.location == os.path.realpath(str(src / 'blog' / 'first.md'))
        assert not ref.embeds

    def test_root_relative_page(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('page:/about', str(src / 'blog' / 'first.md'))
        assert ref.target == 'page:about.md'
        assert ref.href == '/about.html'

    def test_hyperref_scheme_is_an_alias(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('hyperref:about', str(src / 'index.md'))
        assert ref.target == 'page:about.md'

    @pytest.mark.parametrize('url', ['page:about.md', 'page:about.html', 'page:about.htm', 'page:about'])
    def test_extensions_are_normalized(self, tree, url):
        resolver, src, _ = tree
        assert resolver.resolve(url, str(src / 'index.md')).target == 'page:about.md'

    def test_directory_means_index(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('page:blog/', str(src / 'index.md'))
        assert ref.target == 'page:blog/index.md'
        assert ref.href == '/blog/index.html'

    def test_fragment_is_kept(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('page:about#team', str(src / 'index.md'))
        assert ref.target == 'page:about.md'
        assert ref.href == '/about.html#team'

    def test_parent_relative_page(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('page:../about', str(src / 'blog' / 'first.md'))
        assert ref.target == 'page:about.md'

    def test_missing_page(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference) as exc:
            resolver.resolve('page:nowhere', str(src / 'index.md'), source='page:index.md')
        assert exc.value.source == 'page:index.md'

    def test_page_outside_source_root(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve('page:../secret', str(src / 'index.md'))

    def test_empty_page_reference(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve('page:', str(src / 'index.md'))


class TestAssetReferences:
    """Test cases for asset: images."""

    def test_asset_image(self, tree):
        resolver, src, assets = tree
        ref = resolver.resolve('asset:img/cat.png', str(src / 'index.md'), embed=True)
        expected = 'images/' + file_hash(str(assets / 'img' / 'cat.png'))[:16] + '.webp'

        assert ref.kind is ReferenceKind.ASSET
        assert ref.target == 'asset:img/cat.png'
        assert ref.output == expected
        assert ref.href == '/' + expected
        assert ref.optimize and ref.embeds

    def test_svg_keeps_extension(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('asset:logo.svg', str(src / 'index.md'), embed=True)
        assert ref.output.endswith('.svg')

    def test_leading_slash_is_ignored(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('asset:/img/cat.png', str(src / 'index.md'), embed=True)
        assert ref.target == 'asset:img/cat.png'

    def test_missing_asset(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve('asset:img/dog.png', str(src / 'index.md'), embed=True)

    def test_asset_outside_root(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve('asset:../secret.md', str(src / 'index.md'), embed=True)

    def test_no_assets_root(self, tree):
        _, src, _ = tree
        resolver = ReferenceResolver(str(src), None)
        with pytest.raises(UnresolvedReference):
            resolver.resolve('asset:img/cat.png', str(src / 'index.md'), embed=True)


class TestExternalReferences:
    """Test cases for remote and pass-through URLs."""

    def test_remote_image_is_optimized(self, tree):
        resolver, src, _ = tree
        url = 'https://example.com/pics/cat.jpg'
        ref = resolver.resolve(url, str(src / 'index.md'), embed=True)

        assert ref.kind is ReferenceKind.RAW_OPTIMIZED
        assert ref.target == 'image:' + url
        assert ref.location == url
        assert ref.output == f'images/{short_hash(url)}.webp'

    def test_remote_svg(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('https://example.com/logo.svg', str(src / 'index.md'), embed=True)
        assert ref.output.endswith('.svg')

    def test_external_link_is_left_alone(self, tree):
        resolver, src, _ = tree
        assert resolver.resolve('https://example.com/', str(src / 'index.md')) is None
        assert resolver.resolve('mailto:me@example.com', str(src / 'index.md')) is None

    def test_schemeless_urls_are_left_alone(self, tree):
        resolver, src, _ = tree
        assert resolver.resolve('about.html', str(src / 'index.md')) is None
        assert resolver.resolve('/img/cat.png', str(src / 'index.md'), embed=True) is None
        assert resolver.resolve('#top', str(src / 'index.md')) is None

    def test_noprocess_strips_suffix(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('https-noprocess://cdn.example.com/cat.gif', str(src / 'index.md'), embed=True)

        assert ref.kind is ReferenceKind.RAW_UNOPTIMIZED
        assert ref.href == 'https://cdn.example.com/cat.gif'
        assert not ref.in_graph
        assert not ref.optimize

    def test_noprocess_on_links(self, tree):
        resolver, src, _ = tree
        ref = resolver.resolve('http-noprocess://example.com/', str(src / 'index.md'))
        assert ref.href == 'http://example.com/'

    @pytest.mark.parametrize('url', ['asset-noprocess:img/cat.png', 'page-noprocess:about'])
    def test_local_schemes_cannot_opt_out(self, tree, url):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve(url, str(src / 'index.md'), embed=True)

    def test_unfetchable_image_scheme(self, tree):
        resolver, src, _ = tree
        with pytest.raises(UnresolvedReference):
            resolver.resolve('ftp://example.com/cat.png', str(src / 'index.md'), embed=True)
