import pytest

from jdkstrap.distributions import (
    AmazonCorrettoDistribution,
    AzulZuluDistribution,
    Extension,
    GraalVmCeDistribution,
    JavaEarlyAccessDistribution,
    JdkDistributions,
    combine_zulu_versions,
    parse_early_access_version,
    split_graal_version,
    split_zulu_version,
)
from jdkstrap.errors import InvalidVersion, JdkstrapError, UnsupportedCombination
from jdkstrap.platforms import Arch, Os
from jdkstrap.spec import JdkDistributionName, JdkRelease


def release(version: str, os_name: Os = Os.LINUX_GLIBC, arch: Arch = Arch.X86_64) -> JdkRelease:
    return JdkRelease(version=version, os=os_name, arch=arch)


def test_zulu_path_uses_azul_vocabulary():
    path = AzulZuluDistribution().path(release("11.56.19-11.0.15"))
    assert path.filename == "zulu11.56.19-ca-jdk11.0.15-linux_x64"
    assert path.extension is Extension.TAR_GZ
    assert path.relative_url == "zulu11.56.19-ca-jdk11.0.15-linux_x64.tar.gz"


def test_zulu_windows_archives_are_zips():
    path = AzulZuluDistribution().path(release("17.44.53-17.0.8.1", Os.WINDOWS, Arch.X86))
    assert path.filename == "zulu17.44.53-ca-jdk17.0.8.1-win_i686"
    assert path.extension is Extension.ZIP


def test_zulu_version_split_keeps_bundle_flags_with_zulu_version():
    split = split_zulu_version("17.44.55-crac-17.0.8.1")
    assert split.zulu_version == "17.44.55-crac"
    assert split.java_version == "17.0.8.1"
    assert combine_zulu_versions(split.zulu_version, split.java_version) == "17.44.55-crac-17.0.8.1"


@pytest.mark.parametrize("version", ["11.56.19", "11.56.19-ea"])
def test_zulu_version_without_java_part_is_rejected(version):
    with pytest.raises(InvalidVersion):
        split_zulu_version(version)


def test_corretto_path_repeats_version():
    path = AmazonCorrettoDistribution().path(release("17.0.8.8.1", Os.LINUX_MUSL, Arch.AARCH64))
    assert path.filename == (
        "downloads/resources/17.0.8.8.1/amazon-corretto-17.0.8.8.1-alpine-linux-aarch64"
    )


def test_graal_version_splits_at_first_dot():
    split = split_graal_version("17.21.2.0")
    assert (split.java_version, split.graal_version) == ("17", "21.2.0")
    with pytest.raises(InvalidVersion):
        split_graal_version("17")


def test_graal_path_and_unsupported_platforms():
    graal = GraalVmCeDistribution()
    path = graal.path(release("17.21.2.0", Os.MACOS, Arch.AARCH64))
    assert path.filename == "vm-21.2.0/graalvm-ce-java17-darwin-aarch64-21.2.0"

    with pytest.raises(UnsupportedCombination, match="graalvm-ce"):
        graal.path(release("17.21.2.0", Os.LINUX_MUSL))
    with pytest.raises(UnsupportedCombination):
        graal.path(release("17.21.2.0", arch=Arch.X86))


def test_early_access_version_grammar():
    parsed = parse_early_access_version("24-loom+7-60")
    assert parsed.project_name == "loom"
    assert parsed.java_major_version == "24-loom"
    assert parsed.early_access_major_version == "7"
    assert parsed.early_access_minor_version == "60"
    assert parsed.full_jdk_version == "24-loom+7-60"

    plain = parse_early_access_version("24-ea+17")
    assert plain.project_name == "jdk24"
    assert plain.early_access_minor_version is None


@pytest.mark.parametrize("version", ["24", "24+7", "24-loom+", "24-loom+7-60-1", "a+b+c"])
def test_early_access_version_rejects_malformed(version):
    with pytest.raises(InvalidVersion):
        parse_early_access_version(version)


def test_early_access_paths():
    ea = JavaEarlyAccessDistribution()
    assert ea.path(release("24-loom+7-60")).filename == (
        "loom/7/openjdk-24-loom+7-60_linux-x64_bin"
    )
    assert ea.path(release("24-ea+17", Os.MACOS, Arch.AARCH64)).filename == (
        "jdk24/17/GPL/openjdk-24-ea+17_macos-aarch64_bin"
    )
    with pytest.raises(UnsupportedCombination):
        ea.path(release("24-ea+17", Os.WINDOWS, Arch.AARCH64))
    with pytest.raises(UnsupportedCombination):
        ea.path(release("24-ea+17", Os.LINUX_MUSL))


def test_registry_builds_urls_with_overrides():
    registry = JdkDistributions(
        base_url_overrides={JdkDistributionName.AMAZON_CORRETTO: "https://mirror.example/corretto/"}
    )
    url, path = registry.download_url(JdkDistributionName.AZUL_ZULU, release("11.56.19-11.0.15"))
    assert url == "https://cdn.azul.com/zulu/bin/zulu11.56.19-ca-jdk11.0.15-linux_x64.tar.gz"
    assert path.extension is Extension.TAR_GZ

    url, _ = registry.download_url(JdkDistributionName.AMAZON_CORRETTO, release("21.0.1.12.1"))
    assert url == (
        "https://mirror.example/corretto/downloads/resources/21.0.1.12.1/"
        "amazon-corretto-21.0.1.12.1-linux-x64.tar.gz"
    )


def test_registry_reports_unknown_distribution():
    registry = JdkDistributions(strategies=(AzulZuluDistribution(),))
    assert registry.names() == [JdkDistributionName.AZUL_ZULU]
    with pytest.raises(JdkstrapError, match=r"Available: \[azul-zulu\]"):
        registry.get(JdkDistributionName.GRAALVM_CE)
