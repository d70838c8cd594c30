import io
import tarfile

import pytest

from bundle_resolve import SpecifiedDockerfileNotFoundError

@pytest.mark.asyncio
async def test_specified_plain_dockerfile(resolve_archive):
    result = await resolve_archive(
        {"Dockerfile": "incorrect", "test/Dockerfile": "correct"},
        dockerfile="test/Dockerfile",
    )

    assert result.events["resolver"] == ["Standard Dockerfile"]
    assert result.events["resolved-name"] == ["test/Dockerfile"]
    assert result.file("test/Dockerfile") == "correct"
    # Other Dockerfiles are passed through untouched
    assert result.file("Dockerfile") == "incorrect"
    assert result.hook_calls == ["correct"]

@pytest.mark.asyncio
async def test_specified_template(resolve_archive):
    result = await resolve_archive(
        {
            "Dockerfile": "incorrect",
            "test/Dockerfile.template": "FROM %%RESIN_MACHINE_NAME%% %%BALENA_ARCH%%",
        },
        device_type="raspberrypi3",
        architecture="armv7hf",
        dockerfile="test/Dockerfile.template",
    )

    assert result.events["resolver"] == ["Dockerfile.template"]
    assert result.events["resolved-name"] == ["test/Dockerfile"]
    assert result.file("test/Dockerfile") == "FROM raspberrypi3 armv7hf"
    assert result.file("test/Dockerfile.template") == "FROM %%RESIN_MACHINE_NAME%% %%BALENA_ARCH%%"
    assert result.file("Dockerfile") == "incorrect"
    assert result.hook_calls == ["FROM raspberrypi3 armv7hf"]

@pytest.mark.asyncio
async def test_specified_arch_dockerfile(resolve_archive):
    result = await resolve_archive(
        {"test/Dockerfile.armv7hf": "FROM %%RESIN_ARCH%%", "Dockerfile.template": "incorrect"},
        architecture="armv7hf",
        dockerfile="test/Dockerfile.armv7hf",
    )

    assert result.events["resolver"] == ["Architecture-specific Dockerfile"]
    assert result.events["resolved-name"] == ["test/Dockerfile"]
    assert result.file("test/Dockerfile") == "FROM armv7hf"
    # Auto-detection is off, so the template is never rendered
    assert "Dockerfile" not in result.names

@pytest.mark.asyncio
async def test_specified_file_without_recognized_name(resolve_archive):
    result = await resolve_archive(
        {"Dockerfile": "incorrect", "random": "correct"},
        dockerfile="random",
    )

    assert result.events["resolver"] == ["Standard Dockerfile"]
    assert result.events["resolved-name"] == ["random"]
    assert result.file("random") == "correct"
    assert result.names == ["Dockerfile", "random"]

@pytest.mark.asyncio
async def test_specified_manifest_is_treated_as_plain_dockerfile(resolve_archive, fetched_device_types):
    result = await resolve_archive(
        {"package.json": "FROM node\n"},
        device_type="raspberrypi3",
        dockerfile="package.json",
    )

    assert result.events["resolver"] == ["Standard Dockerfile"]
    assert result.events["resolved-name"] == ["package.json"]
    assert result.entries == [("package.json", b"FROM node\n")]
    assert fetched_device_types == []

@pytest.mark.asyncio
async def test_specified_path_is_normalized(resolve_archive, make_archive):
    data = make_archive({"./test/Dockerfile": "correct"})
    result = await resolve_archive(data, dockerfile="./test//Dockerfile")

    assert result.events["resolved-name"] == ["test/Dockerfile"]
    assert result.file("test/Dockerfile") == "correct"

@pytest.mark.asyncio
async def test_specified_dockerfile_not_found(resolve_archive):
    with pytest.raises(SpecifiedDockerfileNotFoundError) as exc_info:
        await resolve_archive({"Dockerfile": "FROM x"}, dockerfile="test/Dockerfile")

    assert exc_info.value.dockerfile == "test/Dockerfile"
    assert str(exc_info.value) == "Specified dockerfile could not be resolved: test/Dockerfile"

@pytest.mark.asyncio
async def test_only_first_match_is_resolved(resolve_archive):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for contents in (b"first", b"second"):
            info = tarfile.TarInfo("test/Dockerfile")
            info.size = len(contents)
            tar.addfile(info, io.BytesIO(contents))

    result = await resolve_archive(buf.getvalue(), dockerfile="test/Dockerfile")

    assert result.hook_calls == ["first"]
    assert result.events["resolver"] == ["Standard Dockerfile"]
    # The later copy streams through like any other entry
    assert result.entries == [("test/Dockerfile", b"first"), ("test/Dockerfile", b"second")]
